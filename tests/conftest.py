"""Shared test fixtures for OpenCat."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from opencat.kb.models import PatternDraft, PatternKind
from opencat.kb.store import PatternStore


@pytest.fixture(autouse=True)
def isolated_home(tmp_path_factory, monkeypatch) -> Path:
    """Point ~ at a temp directory so user settings and the default KB stay local."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(home))
    return home


@pytest.fixture
def tmp_project(tmp_path: Path) -> Path:
    """Create a temporary workspace with a small Spring + Nest source tree."""
    project = tmp_path / "project"
    opencat_dir = project / ".opencat"
    opencat_dir.mkdir(parents=True)
    (opencat_dir / "settings.json").write_text(json.dumps({
        "storage_dir": str(tmp_path / "kb"),
        "max_files": 50,
    }))

    java = project / "src" / "main" / "java" / "com" / "shop"
    java.mkdir(parents=True)
    (java / "OrderController.java").write_text(
        "package com.shop;\n"
        "\n"
        "@RestController\n"
        "@RequestMapping(\"/orders\")\n"
        "public class OrderController {\n"
        "    private final OrderService orderService;\n"
        "\n"
        "    public OrderController(OrderService orderService) {\n"
        "        this.orderService = orderService;\n"
        "    }\n"
        "\n"
        "    public List<Order> list() {\n"
        "        return orderService.findAll();\n"
        "    }\n"
        "}\n"
    )
    (java / "OrderService.java").write_text(
        "package com.shop;\n"
        "\n"
        "public class OrderService implements OrderRepository {\n"
        "    public List<Order> findAll() { return List.of(); }\n"
        "}\n"
    )

    ts = project / "web"
    ts.mkdir()
    (ts / "user.service.spec.ts").write_text("export class UserServiceSpec {}\n")
    node_modules = project / "node_modules" / "lib"
    node_modules.mkdir(parents=True)
    (node_modules / "vendor.js").write_text("export class Vendor {}\n")
    return project


@pytest.fixture
def store(tmp_path: Path) -> PatternStore:
    """An initialized, empty pattern store."""
    s = PatternStore(tmp_path / "kb")
    s.initialize()
    return s


@pytest.fixture
def jwt_draft() -> PatternDraft:
    return PatternDraft(
        name="JwtAuthFilter",
        language="java",
        kind=PatternKind.COMPONENT,
        code="public class JwtAuthFilter extends OncePerRequestFilter {}",
        description="Validates bearer tokens on every request",
        origin_query="secure the api with tokens",
        tags=["security", "Spring"],
    )
