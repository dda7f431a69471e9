from dcsmax.cli import app

app()
