"""Dockerfile templates per stack."""

from jinja2 import Template

NODE_DOCKERFILE = Template("""\
FROM node:{{ node_version }}-alpine
WORKDIR /app
COPY package*.json ./
RUN npm install
COPY . .
COPY {{ output_dir }}/shim.js /shim.js
ENV NODE_OPTIONS="-r /shim.js"
EXPOSE {{ port }}
CMD {{ command }}
""")

# sitecustomize is imported by site.py at interpreter start-up for any
# directory on PYTHONPATH, ahead of the application's own imports.
PYTHON_DOCKERFILE = Template("""\
FROM python:{{ python_version }}-slim
WORKDIR /app
COPY requirements.txt* pyproject.toml* ./
RUN if [ -f requirements.txt ]; then pip install --no-cache-dir -r requirements.txt; fi
COPY . .
RUN if [ ! -f requirements.txt ] && [ -f pyproject.toml ]; then pip install --no-cache-dir .; fi
COPY {{ output_dir }}/sitecustomize.py /devup/sitecustomize.py
ENV PYTHONPATH=/devup
ENV PYTHONUNBUFFERED=1
EXPOSE {{ port }}
CMD {{ command }}
""")

JAVA_DOCKERFILE = Template("""\
FROM maven:3.9-eclipse-temurin-17
WORKDIR /app
COPY . .
RUN if [ -f pom.xml ]; then mvn -B -q dependency:go-offline; fi
EXPOSE {{ port }}
CMD {{ command }}
""")

DOCKERIGNORE_ENTRIES = [
    "node_modules",
    ".git",
    "__pycache__",
    ".venv",
    "target",
]
