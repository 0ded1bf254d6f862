"""audit/ -- Append-only audit trail for AdPanel.

Layer rule: audit/ imports only stdlib + third-party libraries and core/.
Callers record events through AuditLogger.record(); they never touch
AuditLogStore directly except for admin reads and account deletion.
"""
