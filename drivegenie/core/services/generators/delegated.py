"""
Delegated generator — asks a generative text service for the .iss script.

The service gets a fixed instruction contract (the same directive rules
the structured builder enforces) plus a summary of the config.  Models
are tried best-first as ``RetryTier`` entries driven by ``run_tiers``;
only when every tier fails does one friendly error reach the caller.

Output is best-effort and non-deterministic.  Markdown fences are
stripped, and contract violations are logged rather than raised: the
text is returned for the user to inspect.
"""

from __future__ import annotations

import json
import logging
import os
import re
import time
from collections.abc import Callable, Sequence

from drivegenie.core.errors import GenerationError
from drivegenie.core.models.installer import BackupMode, InstallerConfig
from drivegenie.core.models.template import GeneratedFile
from drivegenie.core.reliability.backoff import RetryTier, TiersExhausted, run_tiers
from drivegenie.core.services import backup_policy
from drivegenie.core.services.departments import DEPARTMENT_OVERRIDES
from drivegenie.core.services.generators.inno_script import (
    SCRIPT_FILE_NAME,
    validate_script_directives,
)

logger = logging.getLogger(__name__)

API_KEY_ENV_VARS = ("GEMINI_API_KEY", "API_KEY")

DEFAULT_TIERS: tuple[RetryTier, ...] = (
    RetryTier("gemini-3-pro-preview", retries=1, base_delay=1.5),
    RetryTier("gemini-2.5-flash", retries=1, base_delay=1.0),
    RetryTier("gemini-flash-lite-latest", retries=2, base_delay=1.0),
)

GenerateFn = Callable[[str, str, str], str]
"""(model_name, system_instruction, prompt) → response text."""

_FENCE_RE = re.compile(r"^\s*```[A-Za-z0-9_-]*\s*\n(?P<body>.*?)\n\s*```\s*$", re.DOTALL)


SYSTEM_INSTRUCTION = """\
You write Inno Setup 6 scripts (.iss) for unattended Synology Drive Client deployment.

Compiler rules, all mandatory:
- Never emit UseAbsolutePaths, WizardImageFile or WizardSmallImageFile.
- Directive names contain no spaces (RestartApplications, not "Restart Applications").
- Boolean directive values are yes or no.
- Always set WizardStyle=modern, RestartApplications=yes and CloseApplications=yes.
- OutputBaseFilename contains no spaces.

Behaviour:
- Online mode: download the MSI with DownloadTemporaryFile to {tmp}\\Setup.msi before running it.
  Offline mode: embed the MSI and extract it before running it.
- Force clean install: find existing Synology Drive Client uninstall registrations, run
  msiexec /x {GUID} /qn for each (best effort), then DelTree {localappdata}\\SynologyDrive
  before installing.
- Backend config: build config.json in {tmp} from Pascal code at run time and pass it with
  msiexec /qn CONFIGPATH="{tmp}\\config.json".
- Device name: Format('%s-%s-%s', [Project, Department, GetComputerNameString]).
- Custom page: project and department combo boxes; changing the project clears and refills
  the departments. A TNewCheckListBox offers Desktop, C:, D:, E:, F:, G:. Checking C: unchecks
  Desktop and vice versa. Next stays disabled until project, department and at least one
  backup root are chosen.
- Override UpdateReadyMemo to summarise project, department and backup roots.
- Interface language: Simplified Chinese.

Return only the script text, no markdown and no explanation.
"""


def build_prompt(config: InstallerConfig) -> str:
    """Summarise ``config`` for the generative service."""
    lines = [
        "Generate a complete Inno Setup script for:",
        "",
        "[Metadata]",
        f"App Name: {config.app_name}",
        f"Version: {config.app_version}",
        f"Publisher: {config.publisher}",
        "",
        "[Install Mode]",
    ]
    if config.use_online_installer:
        lines.append(f"Online installer, download URL: {config.download_url}")
    else:
        lines.append(f"Local MSI: {config.msi_file_name}")
    lines += [
        f"Force clean install: {'yes' if config.force_clean_install else 'no'}",
        f"Run as admin: {'yes' if config.run_as_admin else 'no'}",
        f"Silent MSI: {'yes' if config.silent_install else 'no'}",
        "",
        "[Backend]",
    ]
    backend = config.backend
    if backend.enabled:
        lines += [
            f"Server: {backend.server_address}",
            f"User: {backend.username}",
            f"Password: {backend.password}",
            f"SSL: {'yes' if backend.enable_ssl else 'no'}, "
            f"allow untrusted certificate: {'yes' if backend.allow_untrusted_certificate else 'no'}",
            f"Run as: {backend.as_user}",
            f"Sync session: share {backend.share_folder}, remote {backend.remote_path}, "
            f"local {backend.local_path}",
        ]
    else:
        lines.append("Disabled: do not generate config.json.")

    lines += ["", "[User Info & Backup]"]
    if config.collect_user_info:
        overrides = json.dumps(
            {k: list(v) for k, v in DEPARTMENT_OVERRIDES.items()}, ensure_ascii=False
        )
        lines += [
            f"Projects: {', '.join(config.projects)}",
            f"Department overrides: {overrides}",
            f"Other projects use departments: {', '.join(config.departments)}",
            f"Device renaming: {'yes' if config.use_info_for_device_name else 'no'}",
        ]
    else:
        lines.append("No user info page.")
    if config.enable_backup_selection:
        mode = (
            f"scheduled (backup_mode 2) at {config.backup_start_time}"
            if config.backup_mode == BackupMode.SCHEDULED
            else "continuous (backup_mode 0)"
        )
        lines.append(f"Backup selection checklist, mode {mode}")
    if config.enable_smart_filters:
        lines += [
            f"black_list: {json.dumps(backup_policy.black_list(), ensure_ascii=False)}",
            f"max_file_size: {backup_policy.MAX_FILE_SIZE}",
        ]
    if config.automation_scripts:
        lines.append(f"Extra scripts to run after the MSI: {len(config.automation_scripts)}")
    return "\n".join(lines) + "\n"


def strip_fences(text: str) -> str:
    """Remove one surrounding markdown code fence, if present."""
    match = _FENCE_RE.match(text)
    if match:
        return match.group("body").strip() + "\n"
    return text.strip() + "\n"


def friendly_error(error: BaseException | None) -> str:
    """Map a service error to a short message a user can act on."""
    message = str(error) if error is not None else ""
    try:
        parsed = json.loads(message)
    except ValueError:
        parsed = None
    if isinstance(parsed, dict) and isinstance(parsed.get("error"), dict):
        message = str(parsed["error"].get("message", message))

    lowered = message.lower()
    if "rpc failed" in lowered or "xhr error" in lowered or "network" in lowered:
        return "网络连接不稳定 (RPC/Network Error)"
    if "429" in message or "quota" in lowered:
        return "请求过于频繁，请稍后重试 (Rate Limit)"
    if "503" in message or "overloaded" in lowered:
        return "AI 模型服务繁忙 (Service Overloaded)"
    return message or "unknown error"


def _genai_generate(api_key: str) -> GenerateFn:
    import google.generativeai as genai

    genai.configure(api_key=api_key)

    def generate(model_name: str, system_instruction: str, prompt: str) -> str:
        model = genai.GenerativeModel(model_name=model_name, system_instruction=system_instruction)
        response = model.generate_content(prompt)
        return response.text or ""

    return generate


def resolve_api_key() -> str | None:
    for name in API_KEY_ENV_VARS:
        value = os.environ.get(name)
        if value:
            return value
    return None


class DelegatedGenerator:
    """Generative-service producer for ``setup_script.iss``."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        tiers: Sequence[RetryTier] = DEFAULT_TIERS,
        generate_fn: GenerateFn | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._api_key = api_key
        self._tiers = tuple(tiers)
        self._generate_fn = generate_fn
        self._sleep = sleep

    def _client(self) -> GenerateFn:
        if self._generate_fn is not None:
            return self._generate_fn
        key = self._api_key or resolve_api_key()
        if not key:
            raise GenerationError(
                "API key is missing. Set GEMINI_API_KEY (or API_KEY) in the environment."
            )
        self._generate_fn = _genai_generate(key)
        return self._generate_fn

    def generate(self, config: InstallerConfig) -> GeneratedFile:
        """Ask the service for a script.

        Raises:
            GenerationError: No API key, or every tier failed.
        """
        generate = self._client()
        prompt = build_prompt(config)

        def attempt(tier: RetryTier) -> tuple[str, str]:
            text = generate(tier.name, SYSTEM_INSTRUCTION, prompt)
            if not text.strip():
                raise GenerationError(f"{tier.name} returned no content")
            return tier.name, text

        try:
            model, text = run_tiers(self._tiers, attempt, sleep=self._sleep)
        except TiersExhausted as e:
            friendly = friendly_error(e.last_error)
            raise GenerationError(f"服务调用失败: {friendly}。请检查网络后重试。") from e

        script = strip_fences(text)
        for issue in validate_script_directives(script):
            logger.warning("Generated script (%s): %s", model, issue)

        return GeneratedFile(
            path=SCRIPT_FILE_NAME,
            content=script,
            reason=f"Inno Setup script generated by {model}",
        )
