index = """
<!doctype html>
<html>
  <head>
    <meta charset="utf-8" />
    <title>Voice Contact Capture</title>
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <style>
      body { font-family: system-ui, -apple-system, Segoe UI, Roboto, sans-serif; margin: 32px; max-width: 720px; }
      h1 { margin: 0 0 16px; }
      .row { margin: 12px 0; }
      button { padding: 10px 16px; border-radius: 8px; border: 1px solid #e5e7eb; cursor: pointer; }
      button:disabled { opacity: 0.5; cursor: default; }
      label { display: block; font-size: 14px; margin-bottom: 4px; }
      input, textarea { width: 100%; box-sizing: border-box; padding: 8px 10px; border: 1px solid #e5e7eb; border-radius: 8px; }
      textarea { min-height: 96px; }
      .grid { display: grid; grid-template-columns: 1fr 1fr; gap: 12px; }
      #status { white-space: pre-wrap; background: #fafafa; padding: 12px; border-radius: 8px; min-height: 24px; }
      #status.error { background: #fef2f2; color: #b91c1c; }
      #status.success { background: #f0fdf4; color: #15803d; }
      #review { display: none; }
    </style>
  </head>
  <body>
    <h1>Voice Contact Capture</h1>

    <div class="row">
      <button id="recBtn">Start Recording</button>
      <button id="stopBtn" disabled>Stop</button>
      <span id="timer">00:00</span>
    </div>

    <div class="row"><div id="status">Press Start and say the contact's name, phone, email and company.</div></div>

    <form id="review" class="row">
      <div class="grid">
        <div><label for="firstName">First name *</label><input id="firstName" /></div>
        <div><label for="lastName">Last name</label><input id="lastName" /></div>
        <div><label for="phone">Phone *</label><input id="phone" /></div>
        <div><label for="email">Email</label><input id="email" /></div>
      </div>
      <div class="row"><label for="company">Company</label><input id="company" /></div>
      <div class="row"><label for="notes">Notes</label><textarea id="notes"></textarea></div>
      <div class="row">
        <button type="submit" id="submitBtn">Submit</button>
        <button type="button" id="resetBtn">Reset</button>
      </div>
    </form>

    <script>
      const MIME_TYPES = ['audio/webm', 'audio/webm;codecs=opus', 'audio/ogg;codecs=opus', 'audio/mp4', 'audio/wav'];
      const EXTENSIONS = { 'audio/webm': 'webm', 'audio/ogg': 'ogg', 'audio/mp4': 'm4a', 'audio/mpeg': 'mp3', 'audio/wav': 'wav' };

      const recBtn = document.getElementById('recBtn');
      const stopBtn = document.getElementById('stopBtn');
      const timerEl = document.getElementById('timer');
      const statusEl = document.getElementById('status');
      const form = document.getElementById('review');
      const field = (id) => document.getElementById(id);

      let recorder = null;
      let chunks = [];
      let startedAt = 0;
      let ticker = null;

      function setStatus(text, kind) {
        statusEl.textContent = text;
        statusEl.className = kind || '';
      }

      function formatElapsed(seconds) {
        const m = String(Math.floor(seconds / 60)).padStart(2, '0');
        const s = String(Math.floor(seconds % 60)).padStart(2, '0');
        return m + ':' + s;
      }

      function pickMimeType() {
        if (!window.MediaRecorder) return '';
        return MIME_TYPES.find((t) => MediaRecorder.isTypeSupported(t)) || '';
      }

      recBtn.onclick = async () => {
        let stream;
        try {
          stream = await navigator.mediaDevices.getUserMedia({ audio: true });
        } catch (e) {
          setStatus('Microphone access was denied. Allow microphone permission in your browser and try again.', 'error');
          return;
        }
        const mimeType = pickMimeType();
        recorder = mimeType ? new MediaRecorder(stream, { mimeType }) : new MediaRecorder(stream);
        chunks = [];
        recorder.ondataavailable = (e) => { if (e.data.size > 0) chunks.push(e.data); };
        recorder.onstop = () => {
          stream.getTracks().forEach((t) => t.stop());
          upload(new Blob(chunks, { type: recorder.mimeType || mimeType || 'audio/webm' }));
        };
        recorder.start();
        startedAt = Date.now();
        timerEl.textContent = '00:00';
        ticker = setInterval(() => { timerEl.textContent = formatElapsed((Date.now() - startedAt) / 1000); }, 250);
        recBtn.disabled = true;
        stopBtn.disabled = false;
        form.style.display = 'none';
        setStatus('Recording...');
      };

      stopBtn.onclick = () => {
        clearInterval(ticker);
        stopBtn.disabled = true;
        if (recorder && recorder.state !== 'inactive') recorder.stop();
      };

      async function upload(blob) {
        setStatus('Transcribing...');
        const baseType = (blob.type || 'audio/webm').split(';')[0];
        const fd = new FormData();
        fd.append('audio', blob, 'recording.' + (EXTENSIONS[baseType] || 'webm'));
        try {
          const res = await fetch('/transcribe', { method: 'POST', body: fd, credentials: 'include' });
          const data = await res.json();
          if (!res.ok) throw new Error(data.error + (data.details ? ': ' + JSON.stringify(data.details) : ''));
          fillForm(data.contactData || {});
          setStatus('Review the details below, then press Submit.');
        } catch (e) {
          setStatus('Transcription failed. ' + e.message, 'error');
          recBtn.disabled = false;
        }
      }

      function fillForm(contact) {
        const parts = (contact.name || '').trim().split(/\\s+/);
        field('firstName').value = parts[0] || '';
        field('lastName').value = parts.slice(1).join(' ');
        field('phone').value = contact.phone || '';
        field('email').value = contact.email || '';
        field('company').value = contact.company || '';
        field('notes').value = contact.notes || '';
        form.style.display = 'block';
      }

      form.onsubmit = async (e) => {
        e.preventDefault();
        const name = [field('firstName').value, field('lastName').value].map((v) => v.trim()).filter(Boolean).join(' ');
        const phone = field('phone').value.trim();
        const email = field('email').value.trim();
        if (name.length < 2) return setStatus('Name must be at least 2 characters.', 'error');
        if (phone.length < 10) return setStatus('Phone must be at least 10 characters.', 'error');
        if (email && !/^[^\\s@]+@[^\\s@]+\\.[^\\s@]+$/.test(email)) return setStatus('Email address looks invalid.', 'error');

        field('submitBtn').disabled = true;
        setStatus('Sending to CRM...');
        try {
          const res = await fetch('/submit-contact', {
            method: 'POST',
            credentials: 'include',
            headers: { 'Content-Type': 'application/json' },
            body: JSON.stringify({ name, phone, email, company: field('company').value.trim(), notes: field('notes').value }),
          });
          const data = await res.json();
          if (!res.ok) throw new Error(data.error + (data.details ? ': ' + JSON.stringify(data.details) : ''));
          setStatus('Contact sent to CRM.', 'success');
          form.style.display = 'none';
          recBtn.disabled = false;
        } catch (e) {
          setStatus('Submit failed. ' + e.message, 'error');
        } finally {
          field('submitBtn').disabled = false;
        }
      };

      field('resetBtn').onclick = () => {
        form.reset();
        form.style.display = 'none';
        timerEl.textContent = '00:00';
        recBtn.disabled = false;
        setStatus('Press Start and say the contact\\'s name, phone, email and company.');
      };
    </script>
  </body>
</html>
"""
