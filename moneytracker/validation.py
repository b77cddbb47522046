import math
from typing import Dict, Iterable, Optional

from .schemas import Employee


class TransactionValidator:
    def __init__(self):
        self.validation_rules = {
            'min_amount': 0.0,
            'max_amount': 100000000.00,
        }

    def validate_transaction(
        self,
        txn_type: str,
        amount: Optional[float],
        employee_id: str = "",
        employees: Iterable[Employee] = (),
        cut_override: Optional[float] = None,
    ) -> Dict:
        errors = []
        warnings = []

        amount_validation = self.validate_amount(amount)
        if not amount_validation['is_valid']:
            errors.extend(amount_validation['errors'])
        warnings.extend(amount_validation.get('warnings', []))

        known_ids = {e.id for e in employees}
        if txn_type == "outgoing":
            if not employee_id:
                errors.append("Please choose an employee for outgoing")
            elif employee_id not in known_ids:
                warnings.append(f"Employee {employee_id} not found; transaction will be left out of summaries")
        elif txn_type == "return":
            if employee_id:
                warnings.append("Returns are not attributed to employees; employee cleared")
        else:
            errors.append(f"Unknown transaction type: {txn_type!r}")

        if cut_override is not None and cut_override < 0:
            errors.append(f"Cut override cannot be negative: {cut_override}")

        if errors:
            print(f"❌ VALIDATION: {errors}")
        return {
            'is_valid': len(errors) == 0,
            'errors': errors,
            'warnings': warnings,
        }

    def validate_amount(self, amount: Optional[float]) -> Dict:
        errors = []
        warnings = []
        if amount is None:
            errors.append("Amount missing/invalid")
            return {'is_valid': False, 'errors': errors}
        try:
            value = float(amount)
        except (TypeError, ValueError):
            errors.append("Amount missing/invalid")
            return {'is_valid': False, 'errors': errors}
        if math.isnan(value) or math.isinf(value):
            errors.append("Amount missing/invalid")
            return {'is_valid': False, 'errors': errors}

        if value < self.validation_rules['min_amount']:
            errors.append(f"Amount cannot be negative: ₹{value}")
        if value > self.validation_rules['max_amount']:
            warnings.append(f"Unusually large amount: ₹{value}")
        if value == 0:
            warnings.append("Amount is zero")

        return {
            'is_valid': len(errors) == 0,
            'errors': errors,
            'warnings': warnings,
        }

    def validate_employee(self, cut_type: str, cut_value: Optional[float]) -> Dict:
        errors = []
        warnings = []
        if cut_type not in ("percent", "flat"):
            errors.append(f"Cut type must be 'percent' or 'flat', got {cut_type!r}")
        if cut_value is None or (isinstance(cut_value, float) and math.isnan(cut_value)):
            errors.append("Cut value missing/invalid")
        elif cut_value < 0:
            errors.append(f"Cut value cannot be negative: {cut_value}")
        elif cut_type == "percent" and cut_value > 100:
            warnings.append(f"Cut of {cut_value}% exceeds the amount sent")
        return {
            'is_valid': len(errors) == 0,
            'errors': errors,
            'warnings': warnings,
        }
