"""
Department resolver — project selection → department options.

A handful of projects have a fixed department structure; every other
project offers the configured department list.  The override table is
a business rule, not user configuration.
"""

from __future__ import annotations

from drivegenie.core.models.installer import InstallerConfig, parse_list

DEPARTMENT_OVERRIDES: dict[str, tuple[str, ...]] = {
    "总经办": ("总经办",),
    "职能部门": ("人力行政部", "财务管理部", "运营管理部"),
    "卖场": ("卖场服务部",),
    "万晟汇": ("万晟汇",),
}


def resolve_departments(project: str, department_list: str) -> list[str]:
    """Department options for ``project``.

    Args:
        project: Selected project; empty means nothing selected yet.
        department_list: Comma-separated fallback departments.
    """
    if not project:
        return []
    override = DEPARTMENT_OVERRIDES.get(project)
    if override is not None:
        return list(override)
    return parse_list(department_list)


class DepartmentResolver:
    """Resolver bound to one config's fallback department list."""

    def __init__(self, department_list: str = ""):
        self._department_list = department_list

    @classmethod
    def from_config(cls, config: InstallerConfig) -> DepartmentResolver:
        return cls(config.department_list)

    def resolve(self, project: str) -> list[str]:
        return resolve_departments(project, self._department_list)
