"""Starter task document written by ``sleepship init``."""

TASK_FILE_TEMPLATE = """# Task file

Describe the tasks you want implemented in this file.
Claude Code runs the tasks one by one, in order.

---

## Task1: Initialize the project

Initialize a Go project.

### Implementation
- Run go mod init example-project
- Create the basic directory layout (cmd/, internal/, pkg/)
- Add a .gitignore file

### Verify
- `go mod tidy`

---

## Task2: HTTP server

Implement a basic HTTP server in main.go.

### Dependencies
- 1

### Implementation
- Listen on port 8080
- Return "Hello, World!" from "/"
- Return a JSON health check from "/health"

### Verify
- `go build`

---

## Task3: Tests

Add unit tests for the HTTP handlers.

### Dependencies
- 2

### Prerequisites
- `go version`

### Implementation
Create main_test.go covering "/" and "/health", checking status codes and bodies.

### Verify
- `go test ./...`

---

## Task4: README

Write README.md with a project description, install steps, usage and the
list of endpoints.

### Verify
- `test -f README.md`
"""
