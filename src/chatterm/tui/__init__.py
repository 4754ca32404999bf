"""Terminal UI for chatterm, built on Textual."""
