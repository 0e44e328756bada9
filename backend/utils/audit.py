from database import database
from models import AuditLog, AuditAction
from datetime import datetime
from typing import Optional, Dict, Any
import logging

logger = logging.getLogger(__name__)


async def create_audit_log(
    action: AuditAction,
    resource_type: Optional[str] = None,
    resource_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
) -> str:
    """Create an audit log entry.

    Args:
        action: The audit action type
        resource_type: Type of resource (e.g., 'submission')
        resource_id: ID of the specific resource (application ID)
        metadata: Additional metadata; never include raw form values
        ip_address: IP address of the request
    """
    try:
        db = database.get_db()

        audit_log = AuditLog(
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            metadata=metadata or None,
            ip_address=ip_address,
        )

        doc = audit_log.model_dump()
        doc["timestamp"] = doc["timestamp"].isoformat() if isinstance(doc["timestamp"], datetime) else doc["timestamp"]

        await db.audit_logs.insert_one(doc)
        logger.info(f"Audit log created: {action.value}")
        return audit_log.audit_id
    except Exception as e:
        logger.error(f"Failed to create audit log: {e}")
        # Never fail the main operation due to audit log failure
        return ""

