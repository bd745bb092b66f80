from screenshot_analyzer.cli import app

app()
