"""Demo snippets offered to an empty collection."""

SAMPLE_SNIPPETS: list[dict[str, object]] = [
    {
        "title": "JavaScript Array Map",
        "language": "javascript",
        "tags": ["javascript", "array", "utility"],
        "description": "Map over an array to transform each element",
        "code": (
            "const numbers = [1, 2, 3, 4, 5];\n"
            "const doubled = numbers.map(num => num * 2);\n"
            "console.log(doubled); // [2, 4, 6, 8, 10]"
        ),
    },
    {
        "title": "Python List Comprehension",
        "language": "python",
        "tags": ["python", "list", "comprehension"],
        "description": "Create a list using list comprehension",
        "code": (
            "# Create a list of squares\n"
            "squares = [x**2 for x in range(10)]\n"
            "print(squares)  # [0, 1, 4, 9, 16, 25, 36, 49, 64, 81]"
        ),
    },
    {
        "title": "CSS Flexbox Center",
        "language": "css",
        "tags": ["css", "flexbox", "layout"],
        "description": "Center content using flexbox",
        "code": (
            ".container {\n"
            "    display: flex;\n"
            "    justify-content: center;\n"
            "    align-items: center;\n"
            "    height: 100vh;\n"
            "}"
        ),
    },
]
