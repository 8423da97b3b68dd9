import os
import sys

# Vercel runs this file directly; make the project root importable
root_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if root_dir not in sys.path:
    sys.path.append(root_dir)

from sistema_mar.app import create_app

app = create_app()
