"""
Tests for department resolution.
"""

from drivegenie.core.models.installer import InstallerConfig
from drivegenie.core.services.departments import (
    DEPARTMENT_OVERRIDES,
    DepartmentResolver,
    resolve_departments,
)


class TestResolveDepartments:
    def test_override_project(self):
        assert resolve_departments("职能部门", "A,B") == ["人力行政部", "财务管理部", "运营管理部"]

    def test_single_department_overrides(self):
        for project in ("总经办", "卖场", "万晟汇"):
            assert resolve_departments(project, "A,B") == list(DEPARTMENT_OVERRIDES[project])

    def test_other_project_uses_list(self):
        assert resolve_departments("南区项目", " A , B ,") == ["A", "B"]

    def test_empty_project(self):
        assert resolve_departments("", "A,B") == []

    def test_empty_list(self):
        assert resolve_departments("南区项目", "") == []

    def test_override_ignores_list(self):
        assert resolve_departments("卖场", "") == ["卖场服务部"]


class TestDepartmentResolver:
    def test_from_config(self):
        config = InstallerConfig(department_list="工程部,客服部")
        resolver = DepartmentResolver.from_config(config)
        assert resolver.resolve("新项目") == ["工程部", "客服部"]
        assert resolver.resolve("总经办") == ["总经办"]

    def test_returns_fresh_lists(self):
        resolver = DepartmentResolver("A")
        first = resolver.resolve("总经办")
        first.append("mutated")
        assert resolver.resolve("总经办") == ["总经办"]
