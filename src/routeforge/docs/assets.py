"""Static viewer shipped with the tool. Versioned with the routeforge release, not the API."""

from __future__ import annotations

ASSETS_VERSION = "0.1.0"

VIEWER_CSS = """\
:root { --fg: #1f2328; --muted: #59636e; --line: #d1d9e0; --bg: #ffffff; }
body { margin: 0; font: 14px/1.5 system-ui, sans-serif; color: var(--fg); background: var(--bg); }
header { padding: 16px 24px; border-bottom: 1px solid var(--line); }
header h1 { margin: 0; font-size: 20px; }
header p { margin: 4px 0 0; color: var(--muted); }
main { padding: 16px 24px; max-width: 960px; }
section.tag h2 { font-size: 16px; text-transform: uppercase; color: var(--muted); }
details.op { border: 1px solid var(--line); border-radius: 6px; margin: 8px 0; }
details.op summary { cursor: pointer; padding: 8px 12px; font-family: ui-monospace, monospace; }
details.op .body { padding: 0 12px 12px; }
.method { display: inline-block; min-width: 64px; font-weight: 700; }
.get { color: #0969da; } .post { color: #1a7f37; } .put { color: #9a6700; }
.patch { color: #8250df; } .delete { color: #cf222e; } .head, .options { color: var(--muted); }
table { border-collapse: collapse; width: 100%; }
th, td { text-align: left; border-bottom: 1px solid var(--line); padding: 4px 8px; }
pre { background: #f6f8fa; padding: 8px; overflow: auto; border-radius: 6px; }
.error { color: #cf222e; }
"""

VIEWER_JS = """\
(function () {
  "use strict";

  function el(tag, attrs, children) {
    var node = document.createElement(tag);
    Object.keys(attrs || {}).forEach(function (k) { node.setAttribute(k, attrs[k]); });
    (children || []).forEach(function (c) {
      node.appendChild(typeof c === "string" ? document.createTextNode(c) : c);
    });
    return node;
  }

  function schemaText(schema) {
    return JSON.stringify(schema || {}, null, 2);
  }

  function renderOperation(path, method, op) {
    var body = el("div", { "class": "body" }, []);
    if (op.description) { body.appendChild(el("p", {}, [op.description])); }
    var params = op.parameters || [];
    if (params.length) {
      var rows = params.map(function (p) {
        return el("tr", {}, [
          el("td", {}, [p.name]), el("td", {}, [p["in"]]),
          el("td", {}, [p.required ? "required" : "optional"]),
          el("td", {}, [el("code", {}, [schemaText(p.schema)])])
        ]);
      });
      body.appendChild(el("table", {}, [
        el("tr", {}, [el("th", {}, ["name"]), el("th", {}, ["in"]), el("th", {}, [""]), el("th", {}, ["schema"])])
      ].concat(rows)));
    }
    if (op.requestBody) {
      body.appendChild(el("h4", {}, ["Request body"]));
      body.appendChild(el("pre", {}, [schemaText(op.requestBody.content["application/json"].schema)]));
    }
    body.appendChild(el("h4", {}, ["Responses"]));
    Object.keys(op.responses || {}).forEach(function (code) {
      var r = op.responses[code];
      body.appendChild(el("p", {}, [el("strong", {}, [code]), " " + (r.description || "")]));
    });
    var summary = el("summary", {}, [
      el("span", { "class": "method " + method }, [method.toUpperCase()]),
      path + (op.summary ? "  " + op.summary : "")
    ]);
    return el("details", { "class": "op" }, [summary, body]);
  }

  function render(root, doc) {
    root.innerHTML = "";
    var info = doc.info || {};
    root.appendChild(el("header", {}, [
      el("h1", {}, [(info.title || "API") + " " + (info.version || "")]),
      el("p", {}, [info.description || ""])
    ]));
    var byTag = {};
    Object.keys(doc.paths || {}).forEach(function (path) {
      var item = doc.paths[path];
      Object.keys(item).forEach(function (method) {
        var op = item[method];
        var tag = (op.tags && op.tags[0]) || "default";
        (byTag[tag] = byTag[tag] || []).push(renderOperation(path, method, op));
      });
    });
    var main = el("main", {}, []);
    Object.keys(byTag).sort().forEach(function (tag) {
      main.appendChild(el("section", { "class": "tag" }, [el("h2", {}, [tag])].concat(byTag[tag])));
    });
    var schemas = (doc.components || {}).schemas || {};
    main.appendChild(el("section", { "class": "tag" }, [el("h2", {}, ["schemas"])].concat(
      Object.keys(schemas).map(function (name) {
        return el("details", { "class": "op" }, [
          el("summary", {}, [name]), el("div", { "class": "body" }, [el("pre", {}, [schemaText(schemas[name])])])
        ]);
      })
    )));
    root.appendChild(main);
  }

  document.addEventListener("DOMContentLoaded", function () {
    var root = document.getElementById("routeforge-docs");
    var url = root.getAttribute("data-openapi-url");
    fetch(url, { cache: "no-store" })
      .then(function (r) { if (!r.ok) { throw new Error("HTTP " + r.status); } return r.json(); })
      .then(function (doc) { render(root, doc); })
      .catch(function (err) {
        root.appendChild(el("p", { "class": "error" }, ["Failed to load " + url + ": " + err.message]));
      });
  });
})();
"""

ASSETS: dict[str, str] = {
    "viewer.css": VIEWER_CSS,
    "viewer.js": VIEWER_JS,
}
