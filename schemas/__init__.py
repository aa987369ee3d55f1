# Schemas Package
