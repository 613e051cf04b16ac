"""Tests for the structural source indexer."""

from __future__ import annotations

from pathlib import Path

import pytest

from opencat.errors import ReadError
from opencat.source.indexer import (
    ComponentKind,
    SourceIndexer,
    classify_kind,
    detect_language,
    is_excluded,
    parse_file,
)
from opencat.source.probes import extract_declared_name, extract_dependencies
from opencat.source.workspace import FileSystemWorkspace


class TestDetectLanguage:
    @pytest.mark.parametrize("path,language", [
        ("a/Foo.java", "java"),
        ("a/foo.ts", "typescript"),
        ("a/Foo.tsx", "typescript"),
        ("a/foo.js", "javascript"),
        ("a/foo.jsx", "javascript"),
        ("a/foo.py", "python"),
        ("a/foo.rb", "unknown"),
    ])
    def test_table(self, path, language):
        assert detect_language(path) == language


class TestExclusion:
    @pytest.mark.parametrize("path", [
        "src/user.test.ts",
        "src/user.spec.ts",
        "src/extension.ts",
    ])
    def test_excluded(self, path):
        assert is_excluded(path)

    def test_not_excluded(self):
        assert not is_excluded("src/testing/UserService.java")

    def test_excluded_file_not_indexed(self):
        assert parse_file("src/user.spec.ts", "export class UserSpec {}") is None


class TestDeclaredName:
    def test_public_class(self):
        assert extract_declared_name("public class OrderService implements OrderRepository {") == "OrderService"

    def test_export_class(self):
        assert extract_declared_name("import x from 'y';\nexport class UserStore {}") == "UserStore"

    def test_export_function(self):
        assert extract_declared_name("export async function fetchUsers() {}") == "fetchUsers"

    def test_export_const(self):
        assert extract_declared_name("export const userRouter = Router();") == "userRouter"

    def test_class_declaration_wins_over_export_const(self):
        text = "export const helper = 1;\nexport class Main {}\n"
        assert extract_declared_name(text) == "Main"

    def test_prose_mention_ignored(self):
        assert extract_declared_name("// this class handles everything\nconst x = 1;") is None

    def test_no_match_drops_file(self):
        assert parse_file("src/util.js", "module.exports = {};") is None


class TestClassifyKind:
    def test_filename_service_beats_body(self):
        text = "public class OrderService implements OrderRepository {}"
        assert classify_kind("OrderService.java", text) == ComponentKind.SERVICE

    @pytest.mark.parametrize("path,kind", [
        ("UserController.java", ComponentKind.CONTROLLER),
        ("user.router.ts", ComponentKind.CONTROLLER),
        ("UserDao.java", ComponentKind.REPOSITORY),
        ("user.repository.ts", ComponentKind.REPOSITORY),
        ("AppConfig.java", ComponentKind.CONFIG),
    ])
    def test_filename_rules(self, path, kind):
        assert classify_kind(path, "") == kind

    def test_controller_before_service_in_filename(self):
        assert classify_kind("ServiceController.java", "") == ComponentKind.CONTROLLER

    @pytest.mark.parametrize("body,kind", [
        ("@RestController\npublic class Orders {}", ComponentKind.CONTROLLER),
        ("const r = Router();", ComponentKind.CONTROLLER),
        ("@Injectable()\nexport class Mailer {}", ComponentKind.SERVICE),
        ("@Service\npublic class Billing {}", ComponentKind.SERVICE),
        ("public interface Users extends JpaRepository<User, Long> {}", ComponentKind.REPOSITORY),
    ])
    def test_body_markers(self, body, kind):
        assert classify_kind("Thing.java", body) == kind

    def test_default_component(self):
        assert classify_kind("Widget.tsx", "export class Widget {}") == ComponentKind.COMPONENT


class TestDependencies:
    def test_final_fields(self):
        text = (
            "public class OrderService {\n"
            "    private final OrderRepository orderRepository;\n"
            "    private final PaymentClient paymentClient;\n"
            "}\n"
        )
        assert extract_dependencies(text) == ("OrderRepository", "PaymentClient")

    def test_autowired_field_on_next_line(self):
        text = "@Autowired\nprivate UserRepository users;\n"
        assert extract_dependencies(text) == ("UserRepository",)

    def test_typescript_constructor(self):
        text = (
            "export class UsersController {\n"
            "  constructor(private readonly usersService: UsersService, private log: Logger) {}\n"
            "}\n"
        )
        assert extract_dependencies(text) == ("UsersService", "Logger")

    def test_constructor_spanning_lines(self):
        text = (
            "@Injectable()\n"
            "export class OrdersService {\n"
            "  constructor(\n"
            "    private readonly usersService: UsersService,\n"
            "    private readonly mailService: MailService,\n"
            "  ) {}\n"
            "}\n"
        )
        record = parse_file("src/orders.service.ts", text)
        assert record is not None
        assert record.dependencies == ("UsersService", "MailService")

    def test_python_init(self):
        text = "class Handler:\n    def __init__(self, repo: UserRepository, retries: int):\n"
        assert extract_dependencies(text) == ("UserRepository",)

    def test_deduplicated(self):
        text = (
            "@Autowired\n"
            "private final OrderRepository repo;\n"
            "private final OrderRepository other;\n"
        )
        assert extract_dependencies(text) == ("OrderRepository",)

    def test_primitives_skipped(self):
        text = "constructor(name: string, count: number) {}"
        assert extract_dependencies(text) == ()


class TestSourceIndexer:
    def test_spec_example(self):
        indexer = SourceIndexer()
        indexer.index([
            ("src/OrderService.java", "public class OrderService implements OrderRepository {\n}\n"),
        ])
        record = indexer.get("OrderService")
        assert record is not None
        assert record.declared_name == "OrderService"
        assert record.kind == ComponentKind.SERVICE
        assert record.language == "java"
        assert record.file_path == "src/OrderService.java"

    def test_last_write_wins(self):
        indexer = SourceIndexer()
        indexer.index([
            ("a/Foo.java", "public class Foo {}"),
            ("b/Foo.java", "public class Foo {}"),
        ])
        assert len(indexer) == 1
        assert indexer.get("Foo").file_path == "b/Foo.java"

    def test_unknown_extension_still_indexed(self):
        indexer = SourceIndexer()
        indexer.index([("lib/Thing.scala", "class Thing")])
        assert indexer.get("Thing").language == "unknown"

    def test_mapping_interface(self):
        indexer = SourceIndexer()
        records = indexer.index([("A.java", "public class A {}"), ("b.js", "var x;")])
        assert "A" in indexer
        assert "b" not in indexer
        assert list(records) == ["A"]
        assert [r.declared_name for r in indexer] == ["A"]

    def test_fresh_indexer_per_pass(self):
        first = SourceIndexer()
        first.index([("A.java", "public class A {}")])
        assert len(SourceIndexer()) == 0


class _FlakyWorkspace:
    def __init__(self, files: dict[str, str | None]) -> None:
        self.files = files

    def list_files(self) -> list[str]:
        return list(self.files)

    def read_text(self, path: str) -> str:
        text = self.files[path]
        if text is None:
            raise ReadError(path, "permission denied")
        return text


class TestIndexWorkspace:
    def test_unreadable_file_skipped(self, caplog):
        workspace = _FlakyWorkspace({
            "Broken.java": None,
            "Good.java": "public class Good {}",
        })
        indexer = SourceIndexer()
        with caplog.at_level("WARNING"):
            indexer.index_workspace(workspace)
        assert list(indexer.records) == ["Good"]
        assert "Broken.java" in caplog.text

    def test_enumeration_failure_propagates(self):
        class Broken:
            def list_files(self):
                raise OSError("no workspace")

            def read_text(self, path):
                return ""

        with pytest.raises(OSError):
            SourceIndexer().index_workspace(Broken())

    def test_filesystem_workspace(self, tmp_project: Path):
        workspace = FileSystemWorkspace(
            tmp_project,
            patterns=["**/*.java", "**/*.ts", "**/*.js"],
            exclude_globs=["**/node_modules/**"],
        )
        indexer = SourceIndexer()
        indexer.index_workspace(workspace)
        assert set(indexer.records) == {"OrderController", "OrderService"}
        assert indexer.get("OrderController").kind == ComponentKind.CONTROLLER
        assert indexer.get("OrderController").dependencies == ("OrderService",)
