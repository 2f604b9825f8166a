from infralayer.cli.main import main

main()
