"""Portfolio admin service: scheduled tasks and webhook delivery."""
