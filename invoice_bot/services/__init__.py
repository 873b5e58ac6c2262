"""Domain services: persistence, totals, rendering, storage and payments."""
