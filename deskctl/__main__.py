from deskctl.cli.main import app

app()
