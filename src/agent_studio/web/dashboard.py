"""Studio page with inline CSS and vanilla JS."""


def get_dashboard_html() -> str:
    return """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>Agent Studio</title>
<style>
  :root {
    --bg: #0d1117; --surface: #161b22; --border: #30363d;
    --text: #e6edf3; --muted: #8b949e;
    --pending: #8b949e; --in-progress: #58a6ff; --completed: #3fb950; --failed: #f85149;
  }
  * { margin: 0; padding: 0; box-sizing: border-box; }
  body { font-family: -apple-system, 'Segoe UI', Helvetica, Arial, sans-serif;
         background: var(--bg); color: var(--text); line-height: 1.5; }
  .layout { display: grid; grid-template-columns: 220px 1fr 360px; height: 100vh; }
  aside, main, section { border-right: 1px solid var(--border); overflow: auto; padding: 16px; }
  h1 { font-size: 16px; margin-bottom: 12px; }
  h2 { font-size: 13px; color: var(--muted); text-transform: uppercase; margin: 12px 0 6px; }
  select, textarea, button { background: var(--surface); color: var(--text);
    border: 1px solid var(--border); border-radius: 6px; font-size: 13px; }
  select { width: 100%; padding: 6px; }
  textarea { width: 100%; padding: 8px; min-height: 70px; resize: vertical; }
  button { padding: 6px 12px; cursor: pointer; margin-top: 6px; }
  button:disabled { opacity: 0.5; cursor: default; }
  .file { font-family: monospace; font-size: 12px; padding: 2px 0; cursor: pointer; }
  .file.active { color: var(--in-progress); }
  pre { font-family: monospace; font-size: 12px; white-space: pre-wrap; }
  .summary { font-size: 13px; margin: 8px 0; }
  .bar { height: 6px; background: var(--surface); border-radius: 3px; overflow: hidden; }
  .bar .fill { height: 100%; background: var(--completed); transition: width 0.3s; }
  .task { display: flex; gap: 8px; font-size: 12px; padding: 3px 0; }
  .badge { font-size: 10px; font-weight: 600; text-transform: uppercase; min-width: 80px; }
  .badge.pending { color: var(--pending); }
  .badge.in-progress { color: var(--in-progress); }
  .badge.completed { color: var(--completed); }
  .badge.failed { color: var(--failed); }
  .logs { font-family: monospace; font-size: 11px; color: var(--muted); }
</style>
</head>
<body>
<div class="layout">
  <aside>
    <h1>Agent Studio</h1>
    <select id="project-picker"><option value="">Loading...</option></select>
    <h2>Files</h2>
    <div id="files"></div>
    <button onclick="openPreview()">Preview</button>
  </aside>
  <main><pre id="editor"></pre></main>
  <section>
    <h2>Goal</h2>
    <textarea id="goal" placeholder="Describe what to build"></textarea>
    <button id="build" onclick="startBuild()">Build</button>
    <button id="cancel" onclick="cancelBuild()" disabled>Cancel</button>
    <div class="summary" id="summary">Idle</div>
    <div class="bar"><div class="fill" id="progress" style="width:0%"></div></div>
    <h2>Tasks</h2>
    <div id="tasks"></div>
    <h2>Log</h2>
    <div class="logs" id="logs"></div>
  </section>
</div>

<script>
let currentProject = null;
let currentFile = null;
let pollTimer = null;
let wasWorking = false;

async function fetchJSON(path, options) {
  const res = await fetch(path, options);
  if (!res.ok) return null;
  return res.json();
}

async function loadProjects() {
  const picker = document.getElementById('project-picker');
  const projects = await fetchJSON('/api/projects');
  if (!projects || projects.length === 0) {
    picker.innerHTML = '<option value="">No projects</option>';
    return;
  }
  picker.innerHTML = projects.map(p => `<option value="${p.id}">${esc(p.name)}</option>`).join('');
  picker.addEventListener('change', () => selectProject(picker.value));
  selectProject(projects[0].id);
}

function selectProject(projectId) {
  currentProject = projectId;
  currentFile = null;
  wasWorking = false;
  refresh();
}

async function refresh() {
  if (!currentProject) return;
  const [files, run] = await Promise.all([
    fetchJSON(`/api/projects/${currentProject}/files`),
    fetchJSON(`/api/projects/${currentProject}/run`),
  ]);
  renderFiles(files || []);
  if (run) renderRun(run);
}

function renderFiles(files) {
  document.getElementById('files').innerHTML = files.map(f =>
    `<div class="file ${f.name === currentFile ? 'active' : ''}"
          onclick="showFile('${esc(f.name)}')">${esc(f.name)}</div>`).join('');
  const open = files.find(f => f.name === currentFile);
  document.getElementById('editor').textContent = open ? open.content : '';
}

function showFile(name) {
  currentFile = name;
  refresh();
}

function renderRun(run) {
  const working = run.status === 'planning' || run.status === 'executing';
  document.getElementById('summary').textContent = run.summary;
  document.getElementById('progress').style.width = `${Math.round(run.progress * 100)}%`;
  document.getElementById('build').disabled = working;
  document.getElementById('cancel').disabled = !working;
  document.getElementById('tasks').innerHTML = run.tasks.map(t =>
    `<div class="task"><span class="badge ${t.status}">${t.status}</span>
     <span>${t.operation} ${esc(t.target_file)}</span></div>`).join('');
  document.getElementById('logs').innerHTML = run.logs.map(l => `<div>${esc(l)}</div>`).join('');
  if (working && !pollTimer) pollTimer = setInterval(refresh, 1000);
  if (!working && pollTimer) { clearInterval(pollTimer); pollTimer = null; }
  if (wasWorking && run.status === 'completed') openPreview();
  wasWorking = working;
}

async function startBuild() {
  const goal = document.getElementById('goal').value;
  await fetchJSON(`/api/projects/${currentProject}/runs`, {
    method: 'POST',
    headers: {'Content-Type': 'application/json'},
    body: JSON.stringify({goal}),
  });
  refresh();
}

async function cancelBuild() {
  await fetchJSON(`/api/projects/${currentProject}/run/cancel`, {method: 'POST'});
  refresh();
}

function openPreview() {
  if (currentProject) window.open(`/api/projects/${currentProject}/preview`, '_blank');
}

function esc(s) {
  if (!s) return '';
  const d = document.createElement('div');
  d.textContent = s;
  return d.innerHTML;
}

loadProjects();
</script>
</body>
</html>"""
