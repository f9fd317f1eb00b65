"""JavaScript evaluated inside the page by the Playwright adapters."""

SNAPSHOT_SCRIPT = r"""
(nodeAttribute) => {
  const root = document.documentElement;
  const live = [root, ...root.querySelectorAll('*')];
  const clone = root.cloneNode(true);
  const copies = [clone, ...clone.querySelectorAll('*')];
  const layout = {};
  live.forEach((el, index) => {
    copies[index].setAttribute(nodeAttribute, String(index));
    const rect = el.getBoundingClientRect();
    const style = getComputedStyle(el);
    layout[index] = {
      x: rect.x, y: rect.y, width: rect.width, height: rect.height,
      display: style.display,
      visibility: style.visibility,
      opacity: parseFloat(style.opacity || '1'),
      pointer_events: style.pointerEvents,
      position: style.position,
      has_offset_parent: el.offsetParent !== null,
      disabled: el.disabled === true,
      read_only: el.readOnly === true,
      required: el.required === true,
      value: typeof el.value === 'string' ? el.value : '',
      has_click_handler: typeof el.onclick === 'function',
    };
  });

  const capabilities = [];
  const responses = {};
  const read = (name, api) => {
    try {
      if (api && typeof api.getResponse === 'function') {
        const value = api.getResponse();
        if (value) responses[name] = value;
      }
    } catch (e) { /* widget not rendered yet */ }
  };
  if (window.grecaptcha && typeof window.grecaptcha.execute === 'function') {
    capabilities.push('grecaptcha.execute');
  }
  if (window.hcaptcha) capabilities.push('hcaptcha');
  if (window.turnstile) capabilities.push('turnstile');
  read('grecaptcha', window.grecaptcha);
  read('hcaptcha', window.hcaptcha);
  read('turnstile', window.turnstile);

  return {
    url: location.href,
    title: document.title,
    viewport: { width: window.innerWidth, height: window.innerHeight },
    html: clone.outerHTML,
    layout,
    capabilities,
    responses,
  };
}
"""

INJECT_TOKEN_SCRIPT = r"""
({ token, responseField, elementPath }) => {
  const anchor = elementPath ? document.querySelector(elementPath) : null;
  let targets = Array.from(
    document.querySelectorAll(`[name="${responseField}"], #${CSS.escape(responseField)}`)
  );
  if (targets.length === 0) {
    const holder = document.createElement('textarea');
    holder.name = responseField;
    holder.style.display = 'none';
    const parent = (anchor && anchor.closest('form')) || anchor || document.forms[0] || document.body;
    parent.appendChild(holder);
    targets = [holder];
  }
  for (const target of targets) {
    target.value = token;
    target.dispatchEvent(new Event('input', { bubbles: true }));
    target.dispatchEvent(new Event('change', { bubbles: true }));
  }
  const callbackName = anchor && anchor.getAttribute('data-callback');
  if (callbackName && typeof window[callbackName] === 'function') {
    try { window[callbackName](token); } catch (e) { /* page callback failed */ }
  }
  return true;
}
"""

OVERLAY_SCRIPT = r"""
({ title, message, durationMs }) => {
  const id = 'applyflow-overlay';
  const existing = document.getElementById(id);
  if (existing) existing.remove();
  const box = document.createElement('div');
  box.id = id;
  box.setAttribute('role', 'alert');
  box.style.cssText = [
    'position:fixed', 'top:16px', 'right:16px', 'z-index:2147483647',
    'max-width:360px', 'padding:12px 16px', 'border-radius:8px',
    'background:#1f2937', 'color:#f9fafb', 'font:14px/1.4 sans-serif',
    'box-shadow:0 4px 12px rgba(0,0,0,.3)',
  ].join(';');
  const heading = document.createElement('strong');
  heading.textContent = title;
  const body = document.createElement('div');
  body.textContent = message;
  box.append(heading, body);
  document.body.appendChild(box);
  setTimeout(() => box.remove(), durationMs);
}
"""
