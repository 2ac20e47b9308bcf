from shipbot.main import main

main()
