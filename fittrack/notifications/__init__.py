"""Single-recipient email notifications: scheduling, rendering and delivery."""
