"""
DeploymentAgent — executes one DeploymentPlan on the local machine.

Phase order:

    acquiring → configuring (prepare) → installing
              → configuring (inject) → launching → done

``failed`` is reachable from any phase.  Only acquisition and the
install itself are fatal; everything after the installer succeeds is
logged and skipped on failure.  Temporary files are scheduled for
removal however the run ends.

The agent holds no UI logic.  Observers get log lines and progress
through ``RunChannels`` and the verdict as a ``RunResult``.
"""

from __future__ import annotations

import logging
import tempfile
import uuid
from collections.abc import Callable, Iterable
from pathlib import Path

from drivegenie.agent.channels import RunChannels
from drivegenie.agent.cleanup import schedule_cleanup
from drivegenie.agent.download import fetch_package, resolve_bundled_package
from drivegenie.agent.host import Host, interpreter_command
from drivegenie.agent.payload import build_backend_payload, write_payload
from drivegenie.agent.plan import DeploymentPlan
from drivegenie.core.errors import (
    AcquisitionError,
    ConfigError,
    InstallError,
    RunCancelled,
)
from drivegenie.core.models.installer import BackupRoot, ScriptFile, ScriptKind
from drivegenie.core.models.run_state import (
    INDETERMINATE,
    DeploymentRunState,
    RunPhase,
    RunResult,
)
from drivegenie.core.observability.logging_config import ChannelHandler
from drivegenie.core.reliability.polling import CancelToken, poll_until
from drivegenie.core.services import backup_policy
from drivegenie.core.services.escaping import msi_property

logger = logging.getLogger(__name__)

# Warnings from these loggers also reach the run's log channel
_FORWARDED_LOGGERS = ("drivegenie.agent.host", "drivegenie.agent.download")


def new_run_token() -> str:
    """A short token unique to one run; names its temp files."""
    return uuid.uuid4().hex[:12]


def install_arguments(
    package: Path, *, silent: bool, config_path: Path | None = None
) -> list[str]:
    """``msiexec /i <pkg> [/qn] /norestart [CONFIGPATH="<json>"]``."""
    args = ["msiexec", "/i", str(package)]
    if silent:
        args.append("/qn")
    args.append("/norestart")
    if config_path is not None:
        args.append(msi_property("CONFIGPATH", str(config_path)))
    return args


class DeploymentAgent:
    """Runs a plan once per ``run()`` call, each with a fresh token."""

    def __init__(
        self,
        plan: DeploymentPlan,
        host: Host,
        *,
        channels: RunChannels | None = None,
        temp_dir: Path | None = None,
        entry_dir: Path | None = None,
        cancel: CancelToken | None = None,
        fetch: Callable[..., Path] = fetch_package,
    ):
        self.plan = plan
        self.host = host
        self.channels = channels or RunChannels()
        self.temp_dir = temp_dir or Path(tempfile.gettempdir())
        self.entry_dir = entry_dir
        self.cancel = cancel or CancelToken()
        self._fetch = fetch
        self.state: DeploymentRunState | None = None
        self.cleanup_timer = None
        self._temp_files: list[Path] = []

    # ── Public API ──────────────────────────────────────────────

    def run(
        self,
        project: str = "",
        department: str = "",
        backup_roots: Iterable[BackupRoot | str] | None = None,
    ) -> RunResult:
        """Execute the plan.  Never raises; failures come back in the result."""
        token = new_run_token()
        self.state = DeploymentRunState(run_token=token)
        self._temp_files = []
        logger.info("Run %s started for %s", token, self.plan.app_identifier)

        forward = ChannelHandler(self._record)
        for name in _FORWARDED_LOGGERS:
            logging.getLogger(name).addHandler(forward)
        try:
            roots = self._check_inputs(project, department, backup_roots)
            package = self._acquire(token)
            config_path = self._prepare(token, project, department, roots)
            self._install(package, config_path)
            self._post_install(token, config_path)
            self._launch()
        except RunCancelled as e:
            return self._fail(f"已取消: {e}")
        except (AcquisitionError, InstallError, ConfigError) as e:
            return self._fail(str(e))
        except Exception as e:
            logger.exception("Unexpected error in run %s", token)
            return self._fail(f"Unexpected error: {e}")
        finally:
            for name in _FORWARDED_LOGGERS:
                logging.getLogger(name).removeHandler(forward)
            self.cleanup_timer = schedule_cleanup(
                self._temp_files, self.plan.timing.cleanup_delay
            )

        self.state.enter(RunPhase.DONE)
        self._progress(100)
        self._log("部署完成")
        logger.info("Run %s finished", token)
        return RunResult(success=True, run_token=token, phase=RunPhase.DONE)

    # ── Phases ──────────────────────────────────────────────────

    def _check_inputs(
        self,
        project: str,
        department: str,
        backup_roots: Iterable[BackupRoot | str] | None,
    ) -> frozenset[BackupRoot]:
        plan = self.plan
        if plan.collect_user_info and not (project.strip() and department.strip()):
            raise ConfigError("请选择项目和部门")

        if backup_roots is None:
            roots = frozenset(plan.default_backup_selection)
        else:
            try:
                roots = backup_policy.normalize(backup_roots)
            except ValueError as e:
                raise ConfigError(f"Unknown backup root: {e}") from e
        if not backup_policy.is_valid(roots, plan.enable_backup_selection):
            raise ConfigError("请至少选择一个备份位置")
        return roots

    def _acquire(self, token: str) -> Path:
        self._enter(RunPhase.ACQUIRING)
        plan = self.plan
        if not plan.use_online_installer:
            package = resolve_bundled_package(plan.msi_file_name, entry_dir=self.entry_dir)
            self._log(f"使用内置安装包 {package.name}")
            return package

        dest = self.temp_dir / f"{plan.app_identifier}-{token}.msi"
        self._temp_files.append(dest)
        self._log("正在下载安装包...")
        return self._fetch(
            plan.download_url,
            dest,
            on_progress=self._progress,
            on_log=self._log,
            timeout=plan.timing.download_timeout,
            max_redirects=plan.timing.max_redirects,
            cancel=self.cancel,
        )

    def _prepare(
        self,
        token: str,
        project: str,
        department: str,
        roots: frozenset[BackupRoot],
    ) -> Path | None:
        """Force-clean and write the backend payload.  Returns its path."""
        plan = self.plan
        if not plan.backend_enabled:
            return None

        self._enter(RunPhase.CONFIGURING)
        self._progress(INDETERMINATE)
        if plan.force_clean_install:
            self._force_clean()

        payload = build_backend_payload(
            plan,
            project=project,
            department=department,
            hostname=self.host.hostname(),
            backup_roots=roots,
        )
        path = self.temp_dir / f"{plan.app_identifier}-{token}.json"
        self._temp_files.append(path)
        try:
            write_payload(payload, path)
        except OSError as e:
            self._warn(f"无法写入配置文件，将不带配置安装: {e}")
            return None
        self._log("已生成服务器配置")
        return path

    def _force_clean(self) -> None:
        layout = self.plan.layout
        codes = self.host.find_uninstall_codes(layout.uninstall_display_name)
        if not codes:
            self._log("未发现旧版本客户端")
        for code in codes:
            self._log(f"正在卸载旧版本 {code}")
            result = self._run_installer(["msiexec", "/x", code, "/qn", "/norestart"])
            if not result.ok:
                self._warn(f"卸载 {code} 失败: {result.error}")

        state_dir = self.host.expand_path(layout.local_state_dir)
        try:
            self.host.remove_tree(state_dir)
        except FileNotFoundError:
            pass
        except OSError as e:
            self._warn(f"清理本地数据失败: {e}")
        else:
            self._log("已清理本地客户端数据")

    def _install(self, package: Path, config_path: Path | None) -> None:
        self._enter(RunPhase.INSTALLING)
        self._progress(INDETERMINATE)
        self._log("正在安装，请在弹出的窗口中确认...")
        args = install_arguments(
            package, silent=self.plan.silent_install, config_path=config_path
        )
        result = self._run_installer(args)
        if not result.ok:
            raise InstallError(f"Installer exited with code {result.return_code}")
        self._log("安装完成")

    def _post_install(self, token: str, config_path: Path | None) -> None:
        """Inject the config into the running client, then run scripts."""
        plan = self.plan
        if config_path is None and not plan.automation_scripts:
            return

        self._enter(RunPhase.CONFIGURING)
        if config_path is not None:
            connect = self._wait_for(plan.layout.connect_candidates, plan.timing.ready_attempts)
            if connect is None:
                self._warn("客户端未就绪，跳过配置导入")
            else:
                args = [connect] + [
                    a.format(config_path=config_path) for a in plan.layout.connect_args
                ]
                result = self.host.run(args)
                if result.ok:
                    self._log("配置已导入")
                else:
                    self._warn(f"配置导入失败: {result.error}")

        for script in plan.automation_scripts:
            self.cancel.check()
            self._run_script(token, script)

    def _run_script(self, token: str, script: ScriptFile) -> None:
        if not script.content.strip():
            self._warn(f"脚本 {script.name} 为空，已跳过")
            return
        path = self._script_path(token, script)
        self._temp_files.append(path)
        encoding = "utf-8-sig" if script.kind == ScriptKind.POWERSHELL else "utf-8"
        try:
            path.write_text(script.content, encoding=encoding)
        except OSError as e:
            self._warn(f"无法写入脚本 {script.name}: {e}")
            return

        self._log(f"正在运行脚本 {script.name}")
        result = self.host.run(interpreter_command(script.kind, str(path)))
        if not result.ok:
            self._warn(f"脚本 {script.name} 失败: {result.error}")

    def _launch(self) -> None:
        self._enter(RunPhase.LAUNCHING)
        timing = self.plan.timing
        launcher = self._wait_for(self.plan.layout.launcher_candidates, timing.launcher_attempts)
        if launcher is None:
            self._warn("未找到客户端启动程序，请手动启动")
            return
        result = self.host.launch_detached(launcher)
        if result.ok:
            self._log("客户端已启动")
        else:
            self._warn(f"启动客户端失败: {result.error}")

    # ── Helpers ─────────────────────────────────────────────────

    def _run_installer(self, args: list[str]):
        if self.plan.run_as_admin:
            return self.host.run_elevated(args)
        return self.host.run(args)

    def _wait_for(self, candidates: Iterable[str], attempts: int) -> str | None:
        options = list(candidates)

        def probe() -> str | None:
            return next((p for p in options if self.host.file_exists(p)), None)

        def heartbeat(attempt: int, total: int) -> None:
            self._log(f"等待客户端就绪... ({attempt}/{total})")

        result = poll_until(
            probe,
            attempts=attempts,
            interval=self.plan.timing.poll_interval,
            cancel=self.cancel,
            heartbeat_every=self.plan.timing.heartbeat_every,
            on_heartbeat=heartbeat,
        )
        return result.value

    def _script_path(self, token: str, script: ScriptFile) -> Path:
        return self.temp_dir / f"{self.plan.app_identifier}-{token}-{script.file_name}"

    def _enter(self, phase: RunPhase) -> None:
        self.cancel.check()
        self.state.enter(phase)
        logger.debug("Run %s → %s", self.state.run_token, phase)

    def _progress(self, value: int) -> None:
        self.channels.progress(self.state.set_progress(value))

    def _record(self, line: str) -> None:
        self.state.append_log(line)
        self.channels.log(line)

    def _log(self, line: str) -> None:
        self._record(line)
        logger.info(line)

    def _warn(self, line: str) -> None:
        self._record(line)
        logger.warning(line)

    def _fail(self, message: str) -> RunResult:
        state = self.state
        failed_in = state.phase
        state.enter(RunPhase.FAILED)
        self._log(f"部署失败: {message}")
        logger.error("Run %s failed during %s: %s", state.run_token, failed_in, message)
        return RunResult(
            success=False, error=message, run_token=state.run_token, phase=RunPhase.FAILED
        )

