# repoviewer/__main__.py
from repoviewer.main import run

run()
