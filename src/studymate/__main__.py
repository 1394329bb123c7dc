from studymate.cli.main import app

app()
