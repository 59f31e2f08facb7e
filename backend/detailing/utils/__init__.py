"""Pure helpers: status rules, UK formats, pricing maths."""
