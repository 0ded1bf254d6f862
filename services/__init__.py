"""services/ -- Operations that span more than one store."""
