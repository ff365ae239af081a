from .kernel import CalystoCESIL

if __name__ == '__main__':
    CalystoCESIL.run_as_main()
