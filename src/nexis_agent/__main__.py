from nexis_agent.cli.app import app

app()
