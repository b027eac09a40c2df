import studioinstall

if __name__ == '__main__':
	studioinstall.run_as_a_module()
