"""
Bundle generator — a desktop deployment app as five source files.

    bundle.yml      build manifest (name, version, portable Windows
                    target, extra resources directory)
    agent_main.py   entry point; embeds the DeploymentPlan as JSON
    bridge.py       wires the window API to a DeploymentAgent
    index.html      presentation shell (welcome, inputs, progress)
    pip.conf        package index mirror used when building

Every dynamic value passes through the escaping function for the
syntax it lands in.  When the backend is disabled the plan carries no
backend section, so no server address or credential appears anywhere
in the bundle.
"""

from __future__ import annotations

import json
from string import Template
from urllib.parse import urlsplit

import yaml

from drivegenie.agent.plan import DeploymentPlan
from drivegenie.core.models.installer import BackupRoot, InstallerConfig
from drivegenie.core.models.template import GeneratedFile
from drivegenie.core.services import backup_policy
from drivegenie.core.services.departments import DepartmentResolver
from drivegenie.core.services.escaping import (
    html_text,
    python_literal,
    script_json,
    single_line,
)

RESOURCES_DIR = "resources"
BUNDLE_FILES = ("bundle.yml", "agent_main.py", "bridge.py", "index.html", "pip.conf")
RUNTIME_REQUIREMENTS = ("drivegenie", "pywebview")

_WINDOW_SIZE = (760, 560)


# ── bundle.yml ──────────────────────────────────────────────────


def _manifest(config: InstallerConfig) -> str:
    manifest = {
        "name": config.app_identifier,
        "product_name": config.app_name,
        "version": config.app_version,
        "publisher": config.publisher,
        "entry": "agent_main.py",
        "files": ["agent_main.py", "bridge.py", "index.html"],
        "target": {"platform": "windows", "format": "portable"},
        "extra_resources": [{"from": RESOURCES_DIR, "to": RESOURCES_DIR}],
        "requirements": list(RUNTIME_REQUIREMENTS),
        "pip_config": "pip.conf",
    }
    return yaml.safe_dump(manifest, sort_keys=False, allow_unicode=True)


# ── agent_main.py ───────────────────────────────────────────────

_AGENT_MAIN = Template('''\
"""Deployment agent entry point.  Generated file; edit the source config instead."""

import logging
import tempfile
from pathlib import Path

import webview

from bridge import create_bridge
from drivegenie.agent import DeploymentPlan
from drivegenie.core.observability.logging_config import setup_logging

APP_TITLE = $title
LOG_FILE_NAME = $log_file
WINDOW_SIZE = $size

PLAN_JSON = $plan

logger = logging.getLogger("agent_main")


def main() -> None:
    entry_dir = Path(__file__).resolve().parent
    setup_logging("INFO", log_file=str(Path(tempfile.gettempdir()) / LOG_FILE_NAME))
    plan = DeploymentPlan.model_validate_json(PLAN_JSON)
    logger.info("Starting %s", plan.app_identifier)

    bridge = create_bridge(plan, entry_dir)
    window = webview.create_window(
        APP_TITLE,
        str(entry_dir / "index.html"),
        js_api=bridge,
        width=WINDOW_SIZE[0],
        height=WINDOW_SIZE[1],
        resizable=False,
        frameless=True,
    )
    bridge.attach(window)
    webview.start()


if __name__ == "__main__":
    main()
''')


def _plan_json(plan: DeploymentPlan) -> str:
    return json.dumps(plan.model_dump(mode="json"), ensure_ascii=False, indent=2, sort_keys=True)


def _agent_main(config: InstallerConfig, plan: DeploymentPlan) -> str:
    return _AGENT_MAIN.substitute(
        title=python_literal(config.app_name),
        log_file=python_literal(f"{config.app_identifier}-agent.log"),
        size=repr(_WINDOW_SIZE),
        plan=python_literal(_plan_json(plan)),
    )


# ── bridge.py ───────────────────────────────────────────────────

_BRIDGE = Template('''\
"""Window API for the deployment agent.  Generated file.

The window calls ``minimize_window``, ``close_window`` and
``start_install(project, department, backup_roots)``; log lines and
progress arrive as ``agent:log`` / ``agent:progress`` DOM events.
"""

from pathlib import Path

from drivegenie.agent import AgentBridge, DeploymentAgent, DeploymentPlan, WindowsHost

APP_IDENTIFIER = $identifier


def create_bridge(plan: DeploymentPlan, entry_dir: Path) -> AgentBridge:
    agent = DeploymentAgent(plan, WindowsHost(), entry_dir=entry_dir)
    return AgentBridge(agent)
''')


def _bridge(config: InstallerConfig) -> str:
    return _BRIDGE.substitute(identifier=python_literal(config.app_identifier))


# ── index.html ──────────────────────────────────────────────────

_INDEX_HTML = Template("""\
<!DOCTYPE html>
<html lang="zh-CN">
<head>
<meta charset="utf-8">
<title>$title</title>
<style>
  body { margin: 0; font-family: "Microsoft YaHei", sans-serif; background: #0f172a; color: #e2e8f0; }
  header { display: flex; justify-content: space-between; align-items: center; padding: 8px 14px; background: #1e293b; }
  header button { background: none; border: none; color: #94a3b8; font-size: 16px; cursor: pointer; }
  section { padding: 24px 32px; }
  .warning { border-left: 3px solid #f59e0b; padding: 8px 12px; background: #422006; }
  label { display: block; margin: 12px 0 4px; }
  select { width: 100%; padding: 6px; }
  .roots { display: grid; grid-template-columns: repeat(3, 1fr); gap: 6px; margin-top: 8px; }
  .primary { margin-top: 20px; padding: 8px 24px; background: #2563eb; color: white; border: none; border-radius: 4px; }
  .primary:disabled { background: #334155; }
  progress { width: 100%; height: 14px; }
  pre { height: 260px; overflow-y: auto; background: #020617; padding: 8px; font-size: 12px; }
</style>
</head>
<body>
<header class="pywebview-drag-region">
  <span>$title</span>
  <span><button id="minimize">&#8211;</button><button id="close">&#215;</button></span>
</header>

<section id="page-welcome">
  <h2>$title</h2>
  <p>$welcome</p>
  $warning
  <button class="primary" id="next">下一步</button>
</section>

<section id="page-input" hidden>
  <div id="user-info">
    <label for="project">所属项目</label>
    <select id="project"><option value="">请选择</option></select>
    <label for="department">所属部门</label>
    <select id="department"><option value="">请选择</option></select>
  </div>
  <div id="backup">
    <label>备份位置 (C: 已包含桌面)</label>
    <div class="roots" id="roots"></div>
  </div>
  <button class="primary" id="start" disabled>开始安装</button>
</section>

<section id="page-installing" hidden>
  <progress id="progress" max="100" value="0"></progress>
  <pre id="log"></pre>
  <p id="result"></p>
</section>

<script>
const SETTINGS = $settings;
let selection = new Set(SETTINGS.backupRoots.filter(r => r.checked).map(r => r.value));

function byId(id) { return document.getElementById(id); }

function show(page) {
  for (const id of ["page-welcome", "page-input", "page-installing"]) {
    byId(id).hidden = id !== page;
  }
}

function fillDepartments() {
  const select = byId("department");
  select.length = 1;
  for (const name of SETTINGS.departments[byId("project").value] || []) {
    select.add(new Option(name, name));
  }
  validate();
}

function toggleRoot(value) {
  if (selection.has(value)) {
    selection.delete(value);
  } else {
    selection.add(value);
    const evicted = SETTINGS.exclusive[value];
    if (evicted) selection.delete(evicted);
  }
  renderRoots();
  validate();
}

function renderRoots() {
  const box = byId("roots");
  box.textContent = "";
  for (const root of SETTINGS.backupRoots) {
    const label = document.createElement("label");
    const input = document.createElement("input");
    input.type = "checkbox";
    input.checked = selection.has(root.value);
    input.onchange = () => toggleRoot(root.value);
    label.append(input, " " + root.label);
    box.append(label);
  }
}

function validate() {
  let ok = true;
  if (SETTINGS.collectUserInfo) {
    ok = byId("project").value !== "" && byId("department").value !== "";
  }
  if (SETTINGS.enableBackupSelection) {
    ok = ok && selection.size > 0;
  }
  byId("start").disabled = !ok;
}

async function startInstall() {
  show("page-installing");
  const roots = SETTINGS.enableBackupSelection
    ? SETTINGS.backupRoots.map(r => r.value).filter(v => selection.has(v))
    : null;
  const result = await window.pywebview.api.start_install(
    byId("project").value, byId("department").value, roots);
  byId("result").textContent = result.success ? "安装完成" : "安装失败: " + result.error;
}

window.addEventListener("agent:log", (e) => {
  const log = byId("log");
  log.textContent += e.detail + "\\n";
  log.scrollTop = log.scrollHeight;
});

window.addEventListener("agent:progress", (e) => {
  const bar = byId("progress");
  if (e.detail < 0) bar.removeAttribute("value"); else bar.value = e.detail;
});

byId("minimize").onclick = () => window.pywebview.api.minimize_window();
byId("close").onclick = () => window.pywebview.api.close_window();
byId("next").onclick = () => show("page-input");
byId("start").onclick = startInstall;
byId("project").onchange = fillDepartments;
byId("department").onchange = validate;

byId("user-info").hidden = !SETTINGS.collectUserInfo;
byId("backup").hidden = !SETTINGS.enableBackupSelection;
for (const name of SETTINGS.projects) byId("project").add(new Option(name, name));
renderRoots();
validate();
</script>
</body>
</html>
""")


def _root_label(root: BackupRoot) -> str:
    return "桌面" if root == BackupRoot.DESKTOP else f"{root.value} 盘"


def _settings(config: InstallerConfig) -> dict:
    resolver = DepartmentResolver.from_config(config)
    return {
        "collectUserInfo": config.collect_user_info,
        "enableBackupSelection": config.enable_backup_selection,
        "projects": config.projects,
        "departments": {p: resolver.resolve(p) for p in config.projects},
        "backupRoots": [
            {
                "value": root.value,
                "label": _root_label(root),
                "checked": root in config.backup_selection,
            }
            for root in BackupRoot
        ],
        "exclusive": {a.value: b.value for a, b in backup_policy.EXCLUSIVE_PAIRS.items()},
    }


def _index_html(config: InstallerConfig) -> str:
    warning = ""
    if config.warning_message.strip():
        warning = (
            f'<div class="warning"><strong>{html_text(config.warning_title)}</strong>'
            f"<p>{html_text(config.warning_message)}</p></div>"
        )
    return _INDEX_HTML.substitute(
        title=html_text(config.app_name),
        welcome=html_text(config.welcome_message),
        warning=warning,
        settings=script_json(_settings(config)),
    )


# ── pip.conf ────────────────────────────────────────────────────


def _pip_conf(config: InstallerConfig) -> str:
    mirror = single_line(config.registry_mirror, "registry_mirror").strip()
    lines = ["[global]", f"index-url = {mirror}"]
    host = urlsplit(mirror).hostname
    if host:
        lines.append(f"trusted-host = {host}")
    return "\n".join(lines) + "\n"


# ── Public API ──────────────────────────────────────────────────


def generate_bundle(config: InstallerConfig) -> list[GeneratedFile]:
    """Generate the five bundle files for ``config``."""
    plan = DeploymentPlan.from_config(config)
    backend = "with backend config" if plan.backend_enabled else "without backend"
    return [
        GeneratedFile(
            path="bundle.yml",
            content=_manifest(config),
            reason=f"Build manifest for {config.app_identifier}",
        ),
        GeneratedFile(
            path="agent_main.py",
            content=_agent_main(config, plan),
            reason=f"Agent entry point ({backend})",
        ),
        GeneratedFile(
            path="bridge.py",
            content=_bridge(config),
            reason="Window API bridge",
        ),
        GeneratedFile(
            path="index.html",
            content=_index_html(config),
            reason="Presentation shell",
        ),
        GeneratedFile(
            path="pip.conf",
            content=_pip_conf(config),
            reason="Package index mirror",
        ),
    ]
