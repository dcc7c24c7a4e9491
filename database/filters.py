import logging
import sqlite3
from typing import Any, Dict, List, Optional, Union

from .core import db_connection, retry_on_db_lock
from .models import (
    CustomShowFilter,
    FilterAction,
    FilterRule,
    FilterType,
    GlobalRuleToggle,
    ShowFilterOverride,
)

RULE_COLUMNS = 'id, name, filter_type, pattern, action, priority, is_global, enabled, created_at'
UPDATABLE_RULE_FIELDS = ('name', 'filter_type', 'pattern', 'action', 'priority', 'enabled')

def row_to_filter_rule(row: sqlite3.Row) -> Optional[FilterRule]:
    filter_type = FilterType.from_str(row['filter_type'])
    action = FilterAction.from_str(row['action'])
    if filter_type is None or action is None:
        logging.warning(f"Skipping filter rule {row['id']} with unknown type/action: {row['filter_type']}/{row['action']}")
        return None
    return FilterRule(
        id=row['id'],
        name=row['name'],
        filter_type=filter_type,
        pattern=row['pattern'],
        action=action,
        priority=row['priority'],
        is_global=bool(row['is_global']),
        enabled=bool(row['enabled']),
        created_at=row['created_at'],
    )

def _rules_from_rows(rows) -> List[FilterRule]:
    return [rule for rule in map(row_to_filter_rule, rows) if rule is not None]

def _enum_value(value: Union[str, FilterType, FilterAction], enum_cls) -> str:
    """Validate a filter type/action given as an enum member or its string value."""
    if isinstance(value, enum_cls):
        return value.value
    parsed = enum_cls.from_str(value)
    if parsed is None:
        raise ValueError(f"Invalid {enum_cls.__name__}: {value!r}")
    return parsed.value

def get_global_filters(conn: Optional[sqlite3.Connection] = None) -> List[FilterRule]:
    """Enabled global rules in evaluation order (priority high to low, then id)."""
    with db_connection(conn) as conn:
        rows = conn.execute(f'''
            SELECT {RULE_COLUMNS} FROM filter_rules
            WHERE is_global = 1 AND enabled = 1
            ORDER BY priority DESC, id ASC
        ''').fetchall()
    return _rules_from_rows(rows)

def get_all_filters(conn: Optional[sqlite3.Connection] = None) -> List[FilterRule]:
    with db_connection(conn) as conn:
        rows = conn.execute(f'SELECT {RULE_COLUMNS} FROM filter_rules ORDER BY priority DESC, id ASC').fetchall()
    return _rules_from_rows(rows)

def get_filter(filter_id: int, conn: Optional[sqlite3.Connection] = None) -> Optional[FilterRule]:
    with db_connection(conn) as conn:
        row = conn.execute(f'SELECT {RULE_COLUMNS} FROM filter_rules WHERE id = ?', (filter_id,)).fetchone()
    return row_to_filter_rule(row) if row else None

@retry_on_db_lock()
def create_filter(name: str, filter_type, pattern: str, action, priority: int = 0, conn: Optional[sqlite3.Connection] = None) -> int:
    with db_connection(conn) as conn:
        cursor = conn.execute('''
            INSERT INTO filter_rules (name, filter_type, pattern, action, priority, is_global, enabled)
            VALUES (?, ?, ?, ?, ?, 1, 1)
        ''', (name, _enum_value(filter_type, FilterType), pattern, _enum_value(action, FilterAction), priority))
        conn.commit()
        logging.info(f"Created filter rule '{name}' (id {cursor.lastrowid})")
        return cursor.lastrowid

@retry_on_db_lock()
def update_filter(filter_id: int, updates: Dict[str, Any], conn: Optional[sqlite3.Connection] = None) -> bool:
    """
    Apply a partial update to a rule. Only name, filter_type, pattern, action,
    priority and enabled can change. Returns False when there is nothing to update
    or no such rule.
    """
    assignments = []
    params = []
    for field_name in UPDATABLE_RULE_FIELDS:
        if updates.get(field_name) is None:
            continue
        value = updates[field_name]
        if field_name == 'filter_type':
            value = _enum_value(value, FilterType)
        elif field_name == 'action':
            value = _enum_value(value, FilterAction)
        elif field_name == 'enabled':
            value = 1 if value else 0
        assignments.append(f"{field_name} = ?")
        params.append(value)

    if not assignments:
        return False

    params.append(filter_id)
    with db_connection(conn) as conn:
        cursor = conn.execute(f"UPDATE filter_rules SET {', '.join(assignments)} WHERE id = ?", params)
        conn.commit()
        return cursor.rowcount > 0

@retry_on_db_lock()
def delete_filter(filter_id: int, conn: Optional[sqlite3.Connection] = None) -> bool:
    with db_connection(conn) as conn:
        cursor = conn.execute('DELETE FROM filter_rules WHERE id = ?', (filter_id,))
        conn.commit()
        return cursor.rowcount > 0

@retry_on_db_lock()
def toggle_filter(filter_id: int, conn: Optional[sqlite3.Connection] = None) -> bool:
    with db_connection(conn) as conn:
        cursor = conn.execute('UPDATE filter_rules SET enabled = NOT enabled WHERE id = ?', (filter_id,))
        conn.commit()
        return cursor.rowcount > 0

def row_to_override(row: sqlite3.Row) -> Optional[ShowFilterOverride]:
    """
    Build the override a row describes, or None (with a warning) when the row
    references a global rule and carries its own rule at the same time, or neither.
    """
    has_rule_ref = row['filter_rule_id'] is not None
    has_custom = row['filter_type'] is not None or row['pattern'] is not None

    if has_rule_ref and not has_custom:
        return GlobalRuleToggle(
            id=row['id'],
            show_id=row['show_id'],
            filter_rule_id=row['filter_rule_id'],
            enabled=bool(row['enabled']),
        )

    if has_custom and not has_rule_ref:
        filter_type = FilterType.from_str(row['filter_type'])
        action = FilterAction.from_str(row['action'])
        if filter_type is None or action is None or not row['pattern']:
            logging.warning(f"Skipping show filter {row['id']}: invalid custom rule {row['filter_type']}={row['pattern']} ({row['action']})")
            return None
        return CustomShowFilter(
            id=row['id'],
            show_id=row['show_id'],
            filter_type=filter_type,
            pattern=row['pattern'],
            action=action,
            enabled=bool(row['enabled']),
        )

    logging.warning(f"Skipping show filter {row['id']}: must reference a global rule or define its own, not both or neither")
    return None

def get_show_filters(show_id: int, conn: Optional[sqlite3.Connection] = None) -> List[ShowFilterOverride]:
    with db_connection(conn) as conn:
        rows = conn.execute('''
            SELECT id, show_id, filter_rule_id, filter_type, pattern, action, enabled
            FROM show_filter_overrides
            WHERE show_id = ?
            ORDER BY id
        ''', (show_id,)).fetchall()
    return [override for override in map(row_to_override, rows) if override is not None]

@retry_on_db_lock()
def create_show_filter(show_id: int, filter_rule_id: Optional[int] = None, filter_type=None, pattern: Optional[str] = None,
                       action='prefer', enabled: bool = True, conn: Optional[sqlite3.Connection] = None) -> int:
    """
    Add a per-show override.

    Pass `filter_rule_id` (usually with enabled=False) to switch a global rule off
    for this show, or `filter_type` and `pattern` to give the show a rule of its own.
    Raises ValueError for any other combination.
    """
    is_toggle = filter_rule_id is not None
    is_custom = filter_type is not None or pattern is not None
    if is_toggle == is_custom:
        raise ValueError("A show filter must reference a global rule or define its own rule, not both or neither")

    if is_custom:
        if not pattern:
            raise ValueError("A custom show filter needs a pattern")
        filter_type = _enum_value(filter_type, FilterType)
    action = _enum_value(action, FilterAction)

    with db_connection(conn) as conn:
        cursor = conn.execute('''
            INSERT INTO show_filter_overrides (show_id, filter_rule_id, filter_type, pattern, action, enabled)
            VALUES (?, ?, ?, ?, ?, ?)
        ''', (show_id, filter_rule_id, filter_type, pattern, action, 1 if enabled else 0))
        conn.commit()
        return cursor.lastrowid

@retry_on_db_lock()
def delete_show_filter(override_id: int, conn: Optional[sqlite3.Connection] = None) -> bool:
    with db_connection(conn) as conn:
        cursor = conn.execute('DELETE FROM show_filter_overrides WHERE id = ?', (override_id,))
        conn.commit()
        return cursor.rowcount > 0
