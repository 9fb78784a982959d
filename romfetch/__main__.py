from romfetch.orchestration import main

main()
