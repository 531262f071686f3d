"""AI study assistant: chat proxy client and stream decoding."""
