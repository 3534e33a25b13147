#!/usr/bin/env python3
"""
Development tasks for preload_counts.

Usage: python dev_tasks.py <command>
"""

import os
import shutil
import subprocess
import sys


def run_command(command, check=True):
    print(f"Running: {command}")
    result = subprocess.run(command, shell=True, check=check)
    return result.returncode == 0


def clean():
    print("Cleaning build artifacts...")
    for path in ["build", "dist", ".pytest_cache", "htmlcov"]:
        shutil.rmtree(path, ignore_errors=True)
    for name in os.listdir("."):
        if name.endswith(".egg-info"):
            shutil.rmtree(name, ignore_errors=True)
    for root, dirs, _files in os.walk("."):
        if "__pycache__" in dirs:
            shutil.rmtree(os.path.join(root, "__pycache__"), ignore_errors=True)
    print("Clean completed.")


def lint():
    print("Running linting...")
    if not run_command("flake8 preload_counts tests examples", check=False):
        print("Linting failed.")
        sys.exit(1)
    print("Linting passed.")


def test():
    print("Running tests...")
    run_command("pytest tests/ -v")
    print("Tests completed.")


def demo():
    print("Running demo...")
    run_command("python -m examples.main")


def build():
    print("Building package...")
    clean()
    run_command("python -m build")
    print("Build completed.")


def install_dev():
    print("Installing in development mode...")
    run_command("pip install -e .[test]")
    print("Development installation completed.")


def main():
    if len(sys.argv) < 2:
        print("Usage: python dev_tasks.py <command>")
        print("Commands: clean, lint, test, demo, build, install-dev, all")
        sys.exit(1)
    command = sys.argv[1]
    commands = {
        "clean": clean,
        "lint": lint,
        "test": test,
        "demo": demo,
        "build": build,
        "install-dev": install_dev,
        "all": lambda: (lint(), test(), build()),
    }
    fn = commands.get(command)
    if not fn:
        print(f"Unknown command: {command}")
        sys.exit(1)
    fn()


if __name__ == "__main__":
    main()
