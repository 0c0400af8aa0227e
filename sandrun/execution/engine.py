"""
Python execution engine.

Orchestrates one request end to end::

    validate -> execution context -> working directory -> shim script
             -> dependencies (optional) -> guest run -> format -> cleanup

The scratch directory is removed on every path, including errors and task
cancellation.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from ..core.config import ProjectConfig
from ..core.exceptions import InterpreterNotFoundError, SandrunError
from ..core.logging import get_logger
from ..core.venv_utils import detect_python
from ..sandbox.environment import build_minimal_env, python_runtime_env
from ..sandbox.installer import DependencyInstaller, InstallResult
from ..sandbox.package_cache import PackageCache
from ..sandbox.runtimes import LocalSandboxRuntime, RuntimeExecutionRequest, SandboxRuntime
from ..sandbox.shim import write_shim_script
from ..sandbox.workspace import ExecutionContext, resolve_working_directory
from .formatter import ExecutionResponse, execution_details, format_outcome
from .request import ExecutionRequest, ReturnFormat

logger = get_logger(__name__)


class PythonExecutor:
    """
    Runs caller code in a confined guest interpreter.

    Example:
        executor = PythonExecutor(ProjectConfig())
        response = await executor.execute({"code": "print(1 + 1)"})
        print(response.text)  # "2\\n"
    """

    def __init__(
        self,
        config: ProjectConfig | None = None,
        *,
        runtime: SandboxRuntime | None = None,
        base_dir: Path | None = None,
        scratch_root: Path | None = None,
    ):
        self.config = config or ProjectConfig()
        self.runtime = runtime or LocalSandboxRuntime()
        self.base_dir = Path(base_dir) if base_dir else None
        self.scratch_root = Path(scratch_root) if scratch_root else None
        self.installer = DependencyInstaller(
            self.runtime,
            grace_period_seconds=self.config.sandbox.grace_period_seconds,
            max_output_bytes=self.config.sandbox.max_output_bytes,
        )
        self.package_cache = (
            PackageCache(self.config.package_cache.directory, installer=self.installer)
            if self.config.package_cache.enabled
            else None
        )
        self._python: str | None = None

    async def resolve_python(self) -> str:
        if self._python is None:
            self._python = await detect_python(
                self.config.sandbox.python_executable,
                project_dir=self.base_dir or Path.cwd(),
            )
            logger.debug(f"Guest interpreter: {self._python}")
        return self._python

    def _minimal_env(self) -> dict[str, str]:
        return build_minimal_env(extra_allowlist=self.config.sandbox.env_allowlist)

    async def execute(self, request: ExecutionRequest | dict[str, Any]) -> ExecutionResponse:
        """Execute one request. Errors become an error response, never an exception."""
        try:
            if not isinstance(request, ExecutionRequest):
                request = ExecutionRequest.from_arguments(request)
        except SandrunError as e:
            return ExecutionResponse.from_error(e)

        timeout_ms = request.effective_timeout_ms(self.config.sandbox)
        try:
            context = ExecutionContext.create(self.scratch_root)
        except OSError as e:
            logger.error(f"Failed to create scratch directory: {e}")
            return ExecutionResponse(success=False, text=f"Failed to execute Python code: {e}")

        try:
            return await self._execute_in_context(request, context, timeout_ms)
        except SandrunError as e:
            logger.debug(f"Execution request failed: {e}")
            return ExecutionResponse.from_error(e)
        except OSError as e:
            logger.error(f"Execution request failed: {e}")
            return ExecutionResponse(success=False, text=f"Failed to execute Python code: {e}")
        except Exception as e:
            logger.exception("Unexpected error while executing request")
            return ExecutionResponse(success=False, text=f"Failed to execute Python code: {e}")
        finally:
            context.cleanup()

    async def _install(
        self,
        request: ExecutionRequest,
        context: ExecutionContext,
        *,
        python: str,
        timeout_ms: int,
        env: dict[str, str],
    ) -> InstallResult:
        install_env = python_runtime_env(env)
        if self.package_cache is not None:
            resolution = await self.package_cache.resolve(
                request.install_packages,
                python=python,
                request_dir=context.packages_dir,
                timeout_ms=timeout_ms,
                env=install_env,
                force_reinstall=request.force_reinstall,
                cwd=context.scratch_dir,
            )
            context.extra_python_path.extend(resolution.paths)
            return resolution.to_install_result(context.packages_dir)

        return await self.installer.install(
            request.install_packages,
            python=python,
            target_dir=context.packages_dir,
            timeout_ms=timeout_ms,
            env=install_env,
            cwd=context.scratch_dir,
        )

    async def _execute_in_context(
        self,
        request: ExecutionRequest,
        context: ExecutionContext,
        timeout_ms: int,
    ) -> ExecutionResponse:
        workdir = resolve_working_directory(
            context,
            workspace=request.workspace,
            target_directory=request.target_directory,
            persistent_root=self.config.sandbox.persistent_workspace,
            base_dir=self.base_dir,
        )

        python = await self.resolve_python()
        env = self._minimal_env()

        install: InstallResult | None = None
        if request.install_packages:
            install = await self._install(
                request, context, python=python, timeout_ms=timeout_ms, env=env
            )

        policy = context.build_policy(read_only=list(context.extra_python_path))
        write_shim_script(
            request.code,
            policy=policy,
            workdir=workdir,
            scratch_dir=context.scratch_dir,
            script_path=context.script_path,
        )

        outcome = await self.runtime.execute(
            RuntimeExecutionRequest(
                argv=[python, str(context.script_path)],
                workdir=workdir,
                timeout_ms=timeout_ms,
                env=python_runtime_env(env, python_path=context.python_path),
                grace_period_seconds=self.config.sandbox.grace_period_seconds,
                max_output_bytes=self.config.sandbox.max_output_bytes,
            )
        )
        if outcome.spawn_failed:
            raise InterpreterNotFoundError(python, outcome.spawn_error or "spawn failed")

        success, text = format_outcome(outcome, timeout_ms)
        blocks: list[str] = []
        if install is not None and install.message:
            logger.info(install.message)
        if request.return_format is ReturnFormat.DETAILED:
            blocks.append(
                execution_details(
                    workdir,
                    timeout_ms,
                    packages=request.install_packages,
                    notes=install.notes if install else None,
                    truncated=outcome.truncated,
                )
            )
        return ExecutionResponse(success=success, text=text, blocks=blocks, outcome=outcome)
