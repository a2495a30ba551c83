from __future__ import annotations

CONSOLE_HTML = """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>Form Console</title>
  <style>
    :root { --line: #d6dce5; --ink: #162334; --dim: #5d6f84; --blue: #1653b5; --tint: #dbe8ff; }
    * { box-sizing: border-box; }
    body { margin: 0; padding: 1.25rem; background: #f5f7fb; color: var(--ink); font: 15px/1.45 "Segoe UI", Arial, sans-serif; }
    .wrap { max-width: 960px; margin: 0 auto; display: grid; gap: 1rem; }
    .hero h1 { margin: 0; font-size: 1.3rem; }
    .hero p, .hint { margin: 0.35rem 0 0; color: var(--dim); font-size: 0.85rem; }
    .panel { background: #fff; border: 1px solid var(--line); border-radius: 10px; padding: 0.9rem; }
    .panel h2 { margin: 0 0 0.6rem; font-size: 1rem; }
    .row { display: flex; gap: 0.5rem; }
    .row input { flex: 1; }
    .field { display: grid; gap: 0.3rem; margin-bottom: 0.6rem; }
    .field label, legend { font-weight: 600; font-size: 0.9rem; }
    fieldset { border: 1px solid var(--line); border-radius: 8px; margin: 0 0 0.6rem; }
    input, textarea, button { font: inherit; }
    input, textarea { width: 100%; padding: 0.5rem; border: 1px solid var(--line); border-radius: 6px; }
    input[type="checkbox"] { width: auto; }
    textarea, pre { font-family: "Menlo", "Consolas", monospace; font-size: 0.85rem; }
    textarea { min-height: 90px; resize: vertical; }
    button { padding: 0.5rem 0.8rem; border: 0; border-radius: 6px; background: #ebf0f7; cursor: pointer; }
    button.primary, .tab.active { background: var(--blue); color: #fff; }
    button:disabled { opacity: 0.6; cursor: wait; }
    .tabs { display: flex; flex-wrap: wrap; gap: 0.4rem; margin-bottom: 0.6rem; }
    .tab { background: var(--tint); color: #19407a; font-size: 0.85rem; }
    .status { font-weight: 700; padding: 0.4rem 0.5rem; border-radius: 6px; background: #eef3f9; }
    .status.ok { color: #0f7a42; background: #e8f8ee; }
    .status.err { color: #b82727; background: #fdeced; }
    pre { margin: 0.5rem 0 0; padding: 0.5rem; max-height: 360px; overflow: auto; white-space: pre-wrap; background: #f8fafc; border: 1px solid var(--line); border-radius: 6px; }
    .hidden { display: none; }
  </style>
</head>
<body>
  <div class="wrap">
    <header class="hero">
      <h1>Form Console</h1>
      <p>Forms generated from the JSON Schema each verb of a resource publishes.</p>
    </header>

    <section class="panel">
      <div class="row">
        <input id="resourcePath" type="text" placeholder="/pets" autocomplete="off">
        <button id="loadBtn" class="primary" type="button">Load</button>
      </div>
    </section>

    <section class="panel">
      <h2>Resource</h2>
      <div id="statusLine" class="status">Ready</div>
      <pre id="resourceBody" class="hidden"></pre>
    </section>

    <section class="panel">
      <div id="tabs" class="tabs"></div>
      <form id="form" novalidate></form>
      <button id="submitBtn" class="primary hidden" type="button">Submit</button>
      <pre id="responseBody" class="hidden"></pre>
    </section>
  </div>

  <script>
    (function () {
      const pathEl = document.getElementById("resourcePath");
      const loadBtn = document.getElementById("loadBtn");
      const statusLineEl = document.getElementById("statusLine");
      const resourceBodyEl = document.getElementById("resourceBody");
      const tabsEl = document.getElementById("tabs");
      const formEl = document.getElementById("form");
      const submitBtn = document.getElementById("submitBtn");
      const responseBodyEl = document.getElementById("responseBody");
      let consoleState = null;
      let visiblePanel = null;

      pathEl.value = new URLSearchParams(window.location.search).get("path") || "/";

      function setStatus(message, variant) {
        statusLineEl.textContent = message;
        statusLineEl.className = "status";
        if (variant) {
          statusLineEl.classList.add(variant);
        }
      }

      function apiUrl(suffix) {
        return "/api/console" + suffix + "?path=" + encodeURIComponent(pathEl.value.trim() || "/");
      }

      async function readResponseDetail(response) {
        const raw = await response.text();
        if (!raw) {
          return "HTTP " + response.status;
        }
        try {
          const parsed = JSON.parse(raw);
          if (parsed && typeof parsed.detail === "string") {
            return parsed.detail;
          }
          return JSON.stringify(parsed);
        } catch (_) {
          return raw;
        }
      }

      function showPre(element, panel) {
        element.textContent = panel && panel.visible ? panel.body : "";
        element.classList.toggle("hidden", !(panel && panel.visible));
      }

      function fieldOptions(options, name, definition) {
        if (definition && options.definitions && options.definitions[definition]) {
          return options.definitions[definition].fields[name] || {};
        }
        return (options.fields && options.fields[name]) || {};
      }

      function inputFor(schema, meta, value) {
        const kind = schema.type;
        let input;
        if (kind === "boolean") {
          input = document.createElement("input");
          input.type = "checkbox";
          input.checked = Boolean(value);
        } else if (kind === "array" || kind === undefined) {
          input = document.createElement("textarea");
          input.value = value === undefined ? "" : JSON.stringify(value, null, 2);
          input.dataset.json = "true";
        } else {
          input = document.createElement("input");
          input.type = meta.type || (kind === "integer" || kind === "number" ? "number" : "text");
          input.value = value === undefined || value === null ? "" : String(value);
        }
        input.dataset.kind = kind || "";
        input.addEventListener("change", function () { pushValue("change"); });
        input.addEventListener("blur", function () { pushValue("blur"); });
        return input;
      }

      function renderProperties(container, schema, options, data, definition) {
        const properties = (schema && schema.properties) || {};
        Object.keys(properties).forEach(function (name) {
          const property = properties[name] || {};
          const meta = fieldOptions(options, name, definition);
          const value = data && typeof data === "object" ? data[name] : undefined;
          if (property.type === "object" || property.properties) {
            const fieldset = document.createElement("fieldset");
            fieldset.dataset.name = name;
            const legend = document.createElement("legend");
            legend.textContent = meta.label || property.title || name;
            fieldset.appendChild(legend);
            const nestedDefinition = property.title && options.definitions && options.definitions[property.title]
              ? property.title
              : null;
            renderProperties(fieldset, property, options, value || {}, nestedDefinition);
            container.appendChild(fieldset);
            return;
          }
          const wrapper = document.createElement("div");
          wrapper.className = "field";
          wrapper.dataset.name = name;
          const label = document.createElement("label");
          label.textContent = meta.label || property.title || name;
          wrapper.appendChild(label);
          wrapper.appendChild(inputFor(property, meta, value));
          if (meta.helper) {
            const hint = document.createElement("div");
            hint.className = "hint";
            hint.textContent = meta.helper;
            wrapper.appendChild(hint);
          }
          container.appendChild(wrapper);
        });
      }

      function readValue(container) {
        const result = {};
        Array.prototype.forEach.call(container.children, function (child) {
          const name = child.dataset ? child.dataset.name : undefined;
          if (!name) {
            return;
          }
          if (child.tagName === "FIELDSET") {
            result[name] = readValue(child);
            return;
          }
          const input = child.querySelector("input, textarea");
          if (!input) {
            return;
          }
          if (input.type === "checkbox") {
            result[name] = input.checked;
          } else if (input.dataset.json === "true") {
            if (input.value.trim()) {
              try {
                result[name] = JSON.parse(input.value);
              } catch (_) {
                result[name] = input.value;
              }
            }
          } else if (input.value !== "") {
            const kind = input.dataset.kind;
            result[name] = kind === "integer" || kind === "number" ? Number(input.value) : input.value;
          }
        });
        return result;
      }

      async function pushValue(trigger) {
        if (!visiblePanel) {
          return;
        }
        await fetch(apiUrl("/panels/" + visiblePanel.verb + "/value"), {
          method: "PUT",
          headers: { "Content-Type": "application/json" },
          body: JSON.stringify({ value: readValue(formEl), trigger: trigger })
        });
      }

      function renderTabs() {
        tabsEl.innerHTML = "";
        consoleState.panels.forEach(function (panel) {
          if (!panel.form) {
            return;
          }
          const tab = document.createElement("button");
          tab.type = "button";
          tab.className = "tab" + (panel.visible ? " active" : "");
          tab.textContent = panel.verb;
          tab.addEventListener("click", function () { selectPanel(panel.verb); });
          tabsEl.appendChild(tab);
        });
      }

      function renderPanel() {
        formEl.innerHTML = "";
        visiblePanel = consoleState.panels.find(function (panel) { return panel.visible; }) || null;
        submitBtn.classList.toggle("hidden", !visiblePanel);
        if (!visiblePanel) {
          showPre(responseBodyEl, null);
          return;
        }
        const form = visiblePanel.form;
        renderProperties(formEl, form.schema, form.options, form.data, null);
        showPre(responseBodyEl, visiblePanel.response);
      }

      function applyState(state) {
        consoleState = state;
        showPre(resourceBodyEl, state.resource);
        if (state.resource_error) {
          setStatus(state.resource_error, "err");
        } else {
          setStatus("Loaded " + state.path, "ok");
        }
        renderTabs();
        renderPanel();
      }

      async function loadConsole() {
        loadBtn.disabled = true;
        setStatus("Loading schemas...", "");
        try {
          const response = await fetch(apiUrl(""));
          if (!response.ok) {
            throw new Error(await readResponseDetail(response));
          }
          applyState(await response.json());
        } catch (error) {
          setStatus("Load failed: " + error.message, "err");
        } finally {
          loadBtn.disabled = false;
        }
      }

      async function selectPanel(verb) {
        const response = await fetch(apiUrl("/panels/" + verb + "/select"), { method: "POST" });
        if (!response.ok) {
          alert(await readResponseDetail(response));
          return;
        }
        applyState(await response.json());
      }

      async function submitPanel() {
        if (!visiblePanel) {
          return;
        }
        submitBtn.disabled = true;
        try {
          await pushValue("change");
          const response = await fetch(apiUrl("/panels/" + visiblePanel.verb + "/submit"), { method: "POST" });
          if (!response.ok) {
            alert(await readResponseDetail(response));
            return;
          }
          const payload = await response.json();
          showPre(responseBodyEl, payload.panel.response);
        } finally {
          submitBtn.disabled = false;
        }
      }

      document.addEventListener("click", function () {
        if (!consoleState) {
          return;
        }
        fetch(apiUrl("/interactions"), {
          method: "POST",
          headers: { "Content-Type": "application/json" },
          body: JSON.stringify({ trigger: "click" })
        });
      });

      document.addEventListener("copy", function (event) {
        if (!visiblePanel || !event.clipboardData) {
          return;
        }
        event.preventDefault();
        event.clipboardData.setData("application/json", JSON.stringify(readValue(formEl)));
      });

      loadBtn.addEventListener("click", loadConsole);
      submitBtn.addEventListener("click", submitPanel);
      loadConsole();
    })();
  </script>
</body>
</html>
"""
