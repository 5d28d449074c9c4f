from promote.cli.app import main

main()
