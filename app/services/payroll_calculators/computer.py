"""
PayMaster - Payroll Computer

Turns one employee's aggregated inputs into entry figures.

    gross          = base_salary + additions
    net_deductions = tax + social_security + health_insurance + loan + other
    net            = gross - net_deductions

Two policy hooks shape the result:
- VacationPayPolicy: whether salary-deducting vacation days reduce base pay
- StatutoryDeductionPolicy: produces tax / social security / health figures
"""

import uuid
from dataclasses import dataclass, asdict
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Protocol

from app.models.payroll import Employee
from app.services.payroll_calculators.common import ZERO, to_money
from app.services.payroll_calculators.event_aggregator import EmployeeEventSummary
from app.services.payroll_calculators.vacation_aggregator import EmployeeVacationSummary
from app.utils.error_handling import ErrorCode, PayrollAggregationException


# ===========================================
# POLICIES
# ===========================================

class VacationPayPolicy(str, Enum):
    """Effect of salary-deducting vacation days on base pay."""
    NONE = "none"
    PRORATE = "prorate"


def apply_vacation_pay_policy(
    policy: VacationPayPolicy,
    salary: Decimal,
    working_days: int,
    deductible_days: int,
) -> Decimal:
    """
    Base salary after vacation.

    prorate: salary * (working_days - deductible_days) / working_days,
    floored at zero paid days.
    """
    salary = to_money(salary)
    if policy == VacationPayPolicy.NONE or deductible_days <= 0 or working_days <= 0:
        return salary
    paid_days = max(0, working_days - deductible_days)
    return to_money(salary * Decimal(paid_days) / Decimal(working_days))


@dataclass(frozen=True)
class StatutoryDeductions:
    tax: Decimal = ZERO
    social_security: Decimal = ZERO
    health_insurance: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.tax + self.social_security + self.health_insurance


class StatutoryDeductionPolicy(Protocol):
    def __call__(self, employee: Employee, gross_pay: Decimal) -> StatutoryDeductions: ...


class FlatStatutoryDeductionPolicy:
    """Same flat amounts for every employee; zero by default."""

    def __init__(
        self,
        tax_deduction: Decimal = ZERO,
        social_security_deduction: Decimal = ZERO,
        health_insurance_deduction: Decimal = ZERO,
    ):
        self.deductions = StatutoryDeductions(
            tax=to_money(tax_deduction or ZERO),
            social_security=to_money(social_security_deduction or ZERO),
            health_insurance=to_money(health_insurance_deduction or ZERO),
        )

    def __call__(self, employee: Employee, gross_pay: Decimal) -> StatutoryDeductions:
        return self.deductions


NO_STATUTORY_DEDUCTIONS = FlatStatutoryDeductionPolicy()


# ===========================================
# RESULTS
# ===========================================

@dataclass(frozen=True)
class EmployeePayrollResult:
    """Computed, not yet persisted, payroll entry."""
    employee_id: uuid.UUID
    contract_salary: Decimal
    base_salary: Decimal
    bonus_amount: Decimal
    tax_deduction: Decimal
    social_security_deduction: Decimal
    health_insurance_deduction: Decimal
    loan_deduction: Decimal
    other_deductions: Decimal
    working_days: int
    actual_working_days: int
    vacation_days: int
    gross_pay: Decimal
    net_pay: Decimal
    adjustment_reason: Optional[str]

    @property
    def total_deductions(self) -> Decimal:
        return (
            self.tax_deduction
            + self.social_security_deduction
            + self.health_insurance_deduction
            + self.loan_deduction
            + self.other_deductions
        )

    def figures(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class RunTotals:
    gross_amount: Decimal
    total_deductions: Decimal
    net_amount: Decimal


def build_adjustment_reason(
    vacation_days: int,
    loan_deduction: Decimal,
    other_deductions: Decimal,
    statutory: StatutoryDeductions,
    currency: str,
) -> Optional[str]:
    """Audit text listing which deduction types applied."""
    parts: List[str] = []
    if vacation_days > 0:
        parts.append(f"{vacation_days} vacation days")
    if loan_deduction > ZERO:
        parts.append(f"Loan deduction: {loan_deduction} {currency}")
    if other_deductions > ZERO:
        parts.append(f"Other deductions: {other_deductions} {currency}")
    if statutory.tax > ZERO:
        parts.append(f"Tax: {statutory.tax} {currency}")
    if statutory.social_security > ZERO:
        parts.append(f"Social security: {statutory.social_security} {currency}")
    if statutory.health_insurance > ZERO:
        parts.append(f"Health insurance: {statutory.health_insurance} {currency}")
    if not parts:
        return None
    return ". ".join(parts) + "."


def actual_working_days(working_days: int, vacation_days: int) -> int:
    return max(0, working_days - vacation_days)


class PayrollComputer:
    """
    Per-employee payroll arithmetic.

    Net pay is not clamped; a negative net is reported as computed.
    """

    def __init__(
        self,
        vacation_pay_policy: VacationPayPolicy = VacationPayPolicy.NONE,
        statutory_policy: StatutoryDeductionPolicy = NO_STATUTORY_DEDUCTIONS,
        currency: str = "KWD",
        default_working_days: int = 26,
    ):
        self.vacation_pay_policy = VacationPayPolicy(vacation_pay_policy)
        self.statutory_policy = statutory_policy
        self.currency = currency
        self.default_working_days = default_working_days

    def compute(
        self,
        employee: Employee,
        vacation: Optional[EmployeeVacationSummary],
        events: Optional[EmployeeEventSummary],
        loan_deduction: Decimal = ZERO,
    ) -> EmployeePayrollResult:
        vacation = vacation or EmployeeVacationSummary()
        events = events or EmployeeEventSummary()

        working_days = employee.standard_working_days or self.default_working_days
        contract_salary = to_money(employee.salary or ZERO)
        base_salary = apply_vacation_pay_policy(
            self.vacation_pay_policy, contract_salary, working_days, vacation.deductible_days,
        )
        additions = to_money(events.additions)
        gross = base_salary + additions

        statutory = self.statutory_policy(employee, gross)
        loan_deduction = to_money(loan_deduction)
        other_deductions = to_money(events.other_deductions)
        net = gross - (statutory.total + loan_deduction + other_deductions)

        return EmployeePayrollResult(
            employee_id=employee.id,
            contract_salary=contract_salary,
            base_salary=base_salary,
            bonus_amount=additions,
            tax_deduction=statutory.tax,
            social_security_deduction=statutory.social_security,
            health_insurance_deduction=statutory.health_insurance,
            loan_deduction=loan_deduction,
            other_deductions=other_deductions,
            working_days=working_days,
            actual_working_days=actual_working_days(working_days, vacation.vacation_days),
            vacation_days=vacation.vacation_days,
            gross_pay=gross,
            net_pay=net,
            adjustment_reason=build_adjustment_reason(
                vacation.vacation_days, loan_deduction, other_deductions, statutory, self.currency,
            ),
        )


def calculate_run_totals(results: Iterable[Any]) -> RunTotals:
    """
    Aggregate gross, deductions and net across entries.

    Accepts computed results or persisted entries; both expose the same
    attribute names.
    """
    gross = deductions = net = ZERO
    for result in results:
        gross += result.gross_pay
        deductions += result.total_deductions
        net += result.net_pay

    if gross - deductions != net:
        raise PayrollAggregationException(
            f"Totals do not balance: gross {gross} - deductions {deductions} != net {net}",
            record_type="payroll_run",
            details={"gross": str(gross), "deductions": str(deductions), "net": str(net)},
            rule="GROSS_MINUS_DEDUCTIONS_EQUALS_NET",
            code=ErrorCode.TOTALS_UNBALANCED,
        )
    return RunTotals(gross_amount=gross, total_deductions=deductions, net_amount=net)
