"""client/ -- HTTP helpers for code that talks to a running AdPanel server."""
