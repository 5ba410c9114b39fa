"""Security tests for specmock.

These tests verify the core security invariants:
- No code execution from contract documents or request data
- Predicates never reach the interpreter's own evaluator
- Request values are echoed, never re-interpreted
- No secrets in default configurations
"""

from __future__ import annotations

import ast
import json
import re
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient

from specmock.config import SpecmockConfig
from specmock.server import ContractServer

if TYPE_CHECKING:
    from collections.abc import Iterator

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SRC_DIR = PROJECT_ROOT / "src"
SPECMOCK_PKG = SRC_DIR / "specmock"


def _python_files() -> Iterator[Path]:
    """Yield all .py files under src/specmock/."""
    yield from SPECMOCK_PKG.rglob("*.py")


def _read_source(path: Path) -> str:
    return path.read_text(encoding="utf-8")


# ---------------------------------------------------------------------------
# AST-based dangerous-call detection
# ---------------------------------------------------------------------------

# Functions that MUST NEVER be called on contract or request input.
DANGEROUS_CALLS = frozenset({"eval", "exec", "compile", "__import__"})

DANGEROUS_OS_ATTRS = frozenset(
    {
        "system",
        "popen",
        "execl",
        "execle",
        "execlp",
        "execlpe",
        "execv",
        "execve",
        "execvp",
        "execvpe",
        "spawnl",
        "spawnle",
        "spawnlp",
        "spawnlpe",
        "spawnv",
        "spawnve",
        "spawnvp",
        "spawnvpe",
    }
)


class DangerousCallVisitor(ast.NodeVisitor):
    """AST visitor that flags dangerous function calls."""

    def __init__(self, filepath: str) -> None:
        self.filepath = filepath
        self.violations: list[str] = []

    def visit_Call(self, node: ast.Call) -> None:  # noqa: N802
        # Direct calls: eval(...), exec(...)
        if isinstance(node.func, ast.Name) and node.func.id in DANGEROUS_CALLS:
            self.violations.append(
                f"{self.filepath}:{node.lineno} - direct call to {node.func.id}()"
            )

        if isinstance(node.func, ast.Attribute) and isinstance(node.func.value, ast.Name):
            owner, attr = node.func.value.id, node.func.attr
            if owner == "os" and attr in DANGEROUS_OS_ATTRS:
                self.violations.append(f"{self.filepath}:{node.lineno} - call to os.{attr}()")
            if owner == "subprocess":
                self.violations.append(
                    f"{self.filepath}:{node.lineno} - call to subprocess.{attr}()"
                )
            if owner == "builtins" and attr in DANGEROUS_CALLS:
                self.violations.append(
                    f"{self.filepath}:{node.lineno} - call to builtins.{attr}()"
                )

        self.generic_visit(node)

    def visit_Import(self, node: ast.Import) -> None:  # noqa: N802
        for alias in node.names:
            if alias.name == "subprocess":
                self.violations.append(f"{self.filepath}:{node.lineno} - imports subprocess module")
        self.generic_visit(node)

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:  # noqa: N802
        if node.module and node.module.startswith("subprocess"):
            self.violations.append(f"{self.filepath}:{node.lineno} - imports from subprocess")
        self.generic_visit(node)


def _find_dangerous_calls(path: Path) -> list[str]:
    """Parse a Python file and return all dangerous call violations."""
    source = _read_source(path)
    try:
        tree = ast.parse(source, filename=str(path))
    except SyntaxError:
        return [f"{path}: SyntaxError -- cannot parse"]
    visitor = DangerousCallVisitor(str(path.relative_to(PROJECT_ROOT)))
    visitor.visit(tree)
    return visitor.violations


# ---------------------------------------------------------------------------
# Tests: No dangerous calls in source
# ---------------------------------------------------------------------------


class TestNoDangerousCalls:
    """Verify no eval/exec/subprocess/os.system in any source file."""

    def test_package_is_scanned(self) -> None:
        assert any(path.name == "predicates.py" for path in _python_files())

    def test_no_dangerous_calls_in_source(self) -> None:
        all_violations: list[str] = []
        for pyfile in _python_files():
            all_violations.extend(_find_dangerous_calls(pyfile))

        if all_violations:
            report = "\n".join(f"  - {v}" for v in all_violations)
            pytest.fail(
                f"Dangerous calls found in source code:\n{report}\n\n"
                "specmock must NEVER call eval/exec/subprocess/os.system on any "
                "value that could originate from a contract or a request."
            )

    def test_no_pickle_loads(self) -> None:
        """pickle.loads is a code execution vector -- must not appear."""
        for pyfile in _python_files():
            source = _read_source(pyfile)
            if "pickle.loads" in source or "pickle.load(" in source:
                rel = pyfile.relative_to(PROJECT_ROOT)
                pytest.fail(f"{rel} uses pickle deserialization -- code execution risk")

    def test_no_yaml_unsafe_load(self) -> None:
        """yaml.load without SafeLoader is a code execution vector."""
        for pyfile in _python_files():
            tree = ast.parse(_read_source(pyfile), filename=str(pyfile))
            for node in ast.walk(tree):
                if (
                    isinstance(node, ast.Call)
                    and isinstance(node.func, ast.Attribute)
                    and node.func.attr == "load"
                    and isinstance(node.func.value, ast.Name)
                    and node.func.value.id == "yaml"
                ):
                    has_safe_loader = any(
                        kw.arg == "Loader"
                        and isinstance(kw.value, ast.Attribute)
                        and "safe" in kw.value.attr.lower()
                        for kw in node.keywords
                    )
                    if not has_safe_loader:
                        rel = pyfile.relative_to(PROJECT_ROOT)
                        pytest.fail(f"{rel}:{node.lineno} uses yaml.load() without SafeLoader")


# ---------------------------------------------------------------------------
# Tests: No secrets in default configuration
# ---------------------------------------------------------------------------

SECRET_PATTERNS = [
    (r"AKIA[0-9A-Z]{16}", "AWS Access Key"),
    (r"sk-[a-zA-Z0-9]{20,}", "OpenAI-style API key"),
    (r"ghp_[a-zA-Z0-9]{36}", "GitHub PAT"),
    (r'(?i)password\s*=\s*["\'][^"\']{8,}["\']', "Hardcoded password"),
]


class TestNoSecrets:
    """Verify no real secrets appear in source, config, or defaults."""

    def _files_to_scan(self) -> Iterator[Path]:
        yield from _python_files()
        yield from PROJECT_ROOT.glob("*.yaml")
        yield from PROJECT_ROOT.glob("*.toml")
        yield from PROJECT_ROOT.glob("*.json")

    def test_no_real_secrets_in_source(self) -> None:
        violations: list[str] = []
        for filepath in self._files_to_scan():
            if not filepath.is_file():
                continue
            content = filepath.read_text(encoding="utf-8", errors="ignore")
            for pattern, description in SECRET_PATTERNS:
                for match in re.finditer(pattern, content):
                    violations.append(
                        f"{filepath.relative_to(PROJECT_ROOT)}: "
                        f"{description} found: {match.group()[:20]}..."
                    )
        if violations:
            report = "\n".join(f"  - {v}" for v in violations)
            pytest.fail(f"Potential secrets found:\n{report}")

    def test_no_env_files_in_repo(self) -> None:
        """Ensure .env files are not committed."""
        env_files = [*PROJECT_ROOT.glob(".env"), *PROJECT_ROOT.glob(".env.*")]
        real_env = [f for f in env_files if ".example" not in f.name]
        if real_env:
            pytest.fail(f".env files found in repo (should be gitignored): {real_env}")


# ---------------------------------------------------------------------------
# Tests: Endpoint fuzzing (integration)
# ---------------------------------------------------------------------------

ECHO_CONTRACT = {
    "request": {"route": "/echo/:value", "method": "post"},
    "response": {
        "code": 200,
        "data": {"route": "{route.value}", "input": "{payload.input}", "page": "{query.q}"},
    },
    "except": {
        "Input is required": {
            "validate": ["exists(payload.input)", "size(payload.input) < 5000"],
            "response": {"code": 422, "data": {"error": "missing input"}},
        }
    },
}


class TestEndpointFuzzing:
    """Fuzz contract endpoints to verify request data is only ever echoed."""

    FUZZ_PAYLOADS = [
        "; ls -la",
        "$(whoami)",
        "__import__('os').system('id')",
        "eval('1+1')",
        "' OR 1=1 --",
        "{{7*7}}",
        "{{random.uuid}}",
        "{payload.input}",
        "${7*7}",
        "{{''.__class__.__mro__[1].__subclasses__()}}",
        "%s%s%s%s%s",
    ]

    @pytest.fixture
    def client(self, tmp_path: Path) -> AsyncClient:
        (tmp_path / "echo.json").write_text(json.dumps(ECHO_CONTRACT), encoding="utf-8")
        config = SpecmockConfig()
        config.contracts.directory = str(tmp_path)
        server = ContractServer(config)
        return AsyncClient(transport=ASGITransport(app=server.app), base_url="http://test")

    @pytest.mark.asyncio
    async def test_fuzz_request_bodies(self, client: AsyncClient) -> None:
        """Injected values come back verbatim, never filled or evaluated."""
        async with client:
            for payload in self.FUZZ_PAYLOADS:
                response = await client.post("/echo/x", json={"input": payload})
                assert response.status_code == 200, payload
                assert response.json()["input"] == payload

    @pytest.mark.asyncio
    async def test_fuzz_query_parameters(self, client: AsyncClient) -> None:
        """Query values are echoed verbatim."""
        async with client:
            for payload in self.FUZZ_PAYLOADS:
                response = await client.post(
                    "/echo/x", params={"q": payload}, json={"input": "ok"}
                )
                assert response.status_code == 200, payload
                assert response.json()["page"] == payload

    @pytest.mark.asyncio
    async def test_oversized_input_takes_except_case(self, client: AsyncClient) -> None:
        """Very long strings are handled by predicates without errors."""
        async with client:
            response = await client.post("/echo/x", json={"input": "A" * 10000})
        assert response.status_code == 422
        assert response.headers["x-assertion"] == "Input is required"

    @pytest.mark.asyncio
    async def test_non_json_body(self, client: AsyncClient) -> None:
        """Malformed JSON bodies are kept as text and never crash a handler."""
        async with client:
            response = await client.post(
                "/echo/x",
                content=b"{not json",
                headers={"content-type": "application/json"},
            )
        assert response.status_code == 200
        assert response.json()["route"] == "x"


# ---------------------------------------------------------------------------
# Tests: Import-time safety
# ---------------------------------------------------------------------------


class TestImportSafety:
    """Verify importing specmock does not have side effects."""

    def test_import_does_not_start_server(self) -> None:
        """Importing specmock must not start a server or bind a port."""
        import specmock

        assert specmock.__version__
