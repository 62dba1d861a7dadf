"""AdScaler Bridge: ad creative orchestration over fal.ai, Bannerbear and n8n."""

__version__ = "0.1.0"
