"""Employee and company lookup used to enrich predictions."""

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class Employee:
    id: int
    first_name: str
    last_name: str
    company_id: int | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class Company:
    id: int
    name: str


class DirectoryLookup(Protocol):
    def get_employee(self, employee_id: int) -> Employee | None:
        raise NotImplementedError

    def get_company(self, company_id: int) -> Company | None:
        raise NotImplementedError


class InMemoryDirectory:
    """Dict-backed :class:`DirectoryLookup`."""

    def __init__(
        self,
        employees: list[Employee] | None = None,
        companies: list[Company] | None = None,
    ) -> None:
        self._employees = {e.id: e for e in employees or []}
        self._companies = {c.id: c for c in companies or []}

    def get_employee(self, employee_id: int) -> Employee | None:
        return self._employees.get(employee_id)

    def get_company(self, company_id: int) -> Company | None:
        return self._companies.get(company_id)
