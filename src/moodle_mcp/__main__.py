from moodle_mcp.cli import main

main()
