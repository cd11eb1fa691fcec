"""
Audit logging for security-critical operations and stock movements.

Logs authentication, authorization and every committed ledger entry
for compliance, investigation, and monitoring purposes.

LOGGING SENSITIVE DATA: auth-related logs never include passwords or tokens.
"""
import logging
import json
from datetime import datetime, timezone
from typing import Any, Optional, Dict

# Separate logger for audit events (can be shipped to centralized logging)
audit_logger = logging.getLogger("audit")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class AuditLog:
    """Central audit logging for security-critical events."""

    @staticmethod
    def log_authentication(
        action: str,  # "login", "logout", "register"
        email: str,
        ip_address: str,
        success: bool,
        reason: str = "",
    ):
        """
        Log authentication events.

        Usage:
            AuditLog.log_authentication("login", "user@example.com", "192.168.1.1", True)
        """
        log_entry = {
            "timestamp": _now(),
            "event_type": f"auth.{action}",
            "email": email,
            "ip_address": ip_address,
            "success": success,
        }

        if reason and not success:
            log_entry["reason"] = reason

        audit_logger.info(json.dumps(log_entry))

    @staticmethod
    def log_action(
        action: str,  # "create", "update"
        resource_type: str,  # "organization", "category", "product"
        resource_id: int,
        user_id: int,
        organization_id: Optional[int] = None,
        changes: Optional[Dict[str, Any]] = None,
    ):
        """
        Log catalog changes.

        Usage:
            AuditLog.log_action("create", "product", 12, user_id=1, organization_id=3)
        """
        log_entry = {
            "timestamp": _now(),
            "event_type": f"{resource_type}.{action}",
            "user_id": user_id,
            "organization_id": organization_id,
            "resource_id": resource_id,
        }

        if changes:
            log_entry["changes"] = changes

        audit_logger.info(json.dumps(log_entry, default=str))

    @staticmethod
    def log_stock_movement(
        organization_id: int,
        product_id: int,
        transaction_id: int,
        transaction_type: str,
        delta: int,
        resulting_balance: int,
        actor: str,
    ):
        """Log a committed ledger entry. Emitted only after the commit succeeded."""
        log_entry = {
            "timestamp": _now(),
            "event_type": "inventory.transaction",
            "organization_id": organization_id,
            "product_id": product_id,
            "transaction_id": transaction_id,
            "transaction_type": transaction_type,
            "delta": delta,
            "resulting_balance": resulting_balance,
            "actor": actor,
        }

        audit_logger.info(json.dumps(log_entry))

    @staticmethod
    def log_stock_rejected(
        organization_id: int,
        product_id: int,
        transaction_type: str,
        delta: int,
        actor: str,
        reason: str,
    ):
        """Log a movement the ledger refused (insufficient stock, bad sign)."""
        log_entry = {
            "timestamp": _now(),
            "event_severity": "WARNING",
            "event_type": "inventory.transaction_rejected",
            "organization_id": organization_id,
            "product_id": product_id,
            "transaction_type": transaction_type,
            "delta": delta,
            "actor": actor,
            "reason": reason,
        }

        audit_logger.warning(json.dumps(log_entry, default=str))

    @staticmethod
    def log_access_denied(
        action: str,  # "read", "write"
        resource_type: str,  # "product", "inventory", "organization"
        resource_id: int,
        user_id: int,
        reason: str,
    ):
        """
        Log denied access attempts (potential attacks).

        SECURITY: Track users reaching for other organizations' data (IDOR).
        """
        log_entry = {
            "timestamp": _now(),
            "event_severity": "WARNING",
            "event_type": "access_denied",
            "action": action,
            "resource_type": resource_type,
            "resource_id": resource_id,
            "user_id": user_id,
            "reason": reason,
        }

        audit_logger.warning(json.dumps(log_entry))

    @staticmethod
    def log_reconciliation(
        organization_id: int,
        product_id: int,
        recorded_quantity: int,
        replayed_quantity: int,
        consistent: bool,
    ):
        """Log the outcome of a ledger reconciliation; mismatches are errors."""
        log_entry = {
            "timestamp": _now(),
            "event_type": "inventory.reconciliation",
            "organization_id": organization_id,
            "product_id": product_id,
            "recorded_quantity": recorded_quantity,
            "replayed_quantity": replayed_quantity,
            "consistent": consistent,
        }

        if consistent:
            audit_logger.info(json.dumps(log_entry))
        else:
            audit_logger.error(json.dumps(log_entry))
