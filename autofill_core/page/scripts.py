"""
JavaScript evaluated inside the page.

The snippets only read element state and perform the final DOM write; every
decision (eligibility, label choice, sensitivity, option matching) is made
in Python on the returned snapshots.

Snapshot record shape (one per ``input, textarea, select`` in document order):

    {
        "index": int, "tag": str, "type": str,
        "name": str, "id": str, "placeholder": str,
        "ariaLabel": str, "autocomplete": str,
        "required": bool, "disabled": bool, "readOnly": bool,
        "display": str, "visibility": str, "width": float, "height": float,
        "checked": bool | None, "uid": str | None,
        "labelSources": {"aria", "labelledBy", "explicit", "wrapped", "siblings"},
        "options": [{"text": str, "value": str}] | None,
        "group": [{"value": str, "labelSources": {...}}] | None   # radios, inspect only
    }
"""

# Shared helpers, spliced into each snippet below.
_HELPERS_JS = """
  const FIELD_SELECTOR = "input, textarea, select";
  const clean = (v) => String(v == null ? "" : v).replace(/\\s+/g, " ").trim();
  const allFields = () => Array.from(document.querySelectorAll(FIELD_SELECTOR));

  const labelSources = (el) => {
    const out = { aria: "", labelledBy: "", explicit: "", wrapped: "", siblings: "" };
    out.aria = clean(el.getAttribute("aria-label"));

    const labelledBy = clean(el.getAttribute("aria-labelledby"));
    if (labelledBy) {
      out.labelledBy = labelledBy
        .split(/\\s+/)
        .map((id) => document.getElementById(id))
        .filter(Boolean)
        .map((node) => clean(node.textContent))
        .join(" ");
    }

    if (el.id) {
      const explicit = document.querySelector(`label[for="${CSS.escape(el.id)}"]`);
      if (explicit) {
        out.explicit = clean(explicit.textContent);
      }
    }

    const wrapped = el.closest("label");
    if (wrapped) {
      out.wrapped = clean(wrapped.textContent);
    }

    const parent = el.parentElement;
    if (parent) {
      out.siblings = Array.from(parent.childNodes)
        .filter((n) => n !== el && n.nodeType === Node.TEXT_NODE)
        .map((n) => clean(n.textContent))
        .filter(Boolean)
        .join(" ");
    }
    return out;
  };

  const describe = (el, index, uidAttr) => {
    const tag = el.tagName.toLowerCase();
    const style = window.getComputedStyle(el);
    const rect = el.getBoundingClientRect();
    const record = {
      index,
      tag,
      type: clean(el.type).toLowerCase(),
      name: clean(el.getAttribute("name")),
      id: clean(el.id),
      placeholder: clean(el.getAttribute("placeholder")),
      ariaLabel: clean(el.getAttribute("aria-label")),
      autocomplete: clean(el.getAttribute("autocomplete")),
      required: Boolean(el.required),
      disabled: Boolean(el.disabled),
      readOnly: Boolean(el.readOnly),
      display: style.display,
      visibility: style.visibility,
      width: rect.width,
      height: rect.height,
      checked: (tag === "input" && (el.type === "checkbox" || el.type === "radio")) ? Boolean(el.checked) : null,
      uid: el.getAttribute(uidAttr),
      labelSources: labelSources(el),
      options: null,
      group: null,
    };
    if (tag === "select") {
      record.options = Array.from(el.options).map((o) => ({
        text: clean(o.textContent),
        value: clean(o.value),
      }));
    }
    return record;
  };

  const findByUid = (uidAttr, uid) =>
    document.querySelector(`[${uidAttr}="${CSS.escape(String(uid))}"]`);

  const radioGroup = (el) => {
    if (!el.name) {
      return [];
    }
    return Array.from(
      document.querySelectorAll(`input[type="radio"][name="${CSS.escape(el.name)}"]`)
    );
  };
"""


def _snippet(body: str) -> str:
    return "(args) => {\n" + _HELPERS_JS + "\n" + body + "\n}"


SNAPSHOT_FIELDS_JS = _snippet("""
  return allFields().map((el, index) => describe(el, index, args.uidAttr));
""")

STAMP_UIDS_JS = _snippet("""
  const fields = allFields();
  return args.assignments.map((a) => {
    const el = fields[a.index];
    if (!el || el.tagName.toLowerCase() !== a.tag) {
      return null;
    }
    const current = el.getAttribute(args.uidAttr);
    if (current === null || (a.replace && current === a.replace)) {
      el.setAttribute(args.uidAttr, a.uid);
    }
    return el.getAttribute(args.uidAttr);
  });
""")

INSPECT_FIELD_JS = _snippet("""
  const el = findByUid(args.uidAttr, args.uid);
  if (!el) {
    return null;
  }
  const record = describe(el, allFields().indexOf(el), args.uidAttr);
  if (record.tag === "input" && record.type === "radio") {
    record.group = radioGroup(el).map((r) => ({
      value: clean(r.value),
      labelSources: labelSources(r),
    }));
  }
  return record;
""")

SET_TEXT_JS = _snippet("""
  const el = findByUid(args.uidAttr, args.uid);
  if (!el) {
    return false;
  }
  const proto = Object.getPrototypeOf(el);
  const descriptor = Object.getOwnPropertyDescriptor(proto, "value");
  if (descriptor && typeof descriptor.set === "function") {
    descriptor.set.call(el, args.value);
  } else {
    el.value = args.value;
  }
  el.dispatchEvent(new Event("input", { bubbles: true }));
  el.dispatchEvent(new Event("change", { bubbles: true }));
  return true;
""")

SELECT_OPTION_JS = _snippet("""
  const el = findByUid(args.uidAttr, args.uid);
  if (!el || !el.options || args.position >= el.options.length) {
    return false;
  }
  el.selectedIndex = args.position;
  el.dispatchEvent(new Event("change", { bubbles: true }));
  return true;
""")

SET_CHECKED_JS = _snippet("""
  const el = findByUid(args.uidAttr, args.uid);
  if (!el) {
    return false;
  }
  el.checked = Boolean(args.checked);
  el.dispatchEvent(new Event("change", { bubbles: true }));
  return true;
""")

CHECK_RADIO_JS = _snippet("""
  const el = findByUid(args.uidAttr, args.uid);
  if (!el) {
    return false;
  }
  const radio = radioGroup(el)[args.position];
  if (!radio) {
    return false;
  }
  radio.checked = true;
  radio.dispatchEvent(new Event("change", { bubbles: true }));
  return true;
""")

INSTALL_HOVER_JS = _snippet("""
  if (window.__affHoverInstalled) {
    return false;
  }
  window.__affHoverInstalled = true;
  document.addEventListener("mouseover", (event) => {
    const target = event.target && event.target.closest
      ? event.target.closest(FIELD_SELECTOR)
      : null;
    if (!target) {
      return;
    }
    const binding = window[args.binding];
    if (typeof binding === "function") {
      binding({ index: allFields().indexOf(target) });
    }
  }, true);
  return true;
""")
