"""maintenance/ -- Task functions behind the operational scripts in scripts/."""
