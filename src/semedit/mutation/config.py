"""
Formatter and diff settings for the edit engine.
"""

FORMATTERS = {
    "python": {
        "command": "black",
        "args": ["--quiet", "-"],
        "extensions": [".py"],
    },
    "rust": {
        "command": "rustfmt",
        "args": ["--emit", "stdout", "--edition", "2021"],
        "extensions": [".rs"],
    },
    "javascript": {
        "command": "prettier",
        "args": ["--parser", "babel"],
        "extensions": [".js", ".jsx", ".mjs", ".cjs"],
    },
    "typescript": {
        "command": "prettier",
        "args": ["--parser", "typescript"],
        "extensions": [".ts"],
    },
    "tsx": {
        "command": "prettier",
        "args": ["--parser", "typescript"],
        "extensions": [".tsx"],
    },
    "go": {
        "command": "gofmt",
        "args": [],
        "extensions": [".go"],
    },
}

INDENT_DETECTION = {
    "default_indent": "  ",  # JSON files default to 2 spaces
    "max_sample_lines": 100,  # Lines to sample for indent detection
}
