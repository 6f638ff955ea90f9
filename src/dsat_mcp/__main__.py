from dsat_mcp.server import main

main()
