import concurrent.futures as fut
import typing as tp
import time
import os
import platform
from enum import Enum

from tqdm import tqdm

BOLD="\033[1m"
RESET="\033[0m"
RED="\033[31m"
GREEN="\033[32m"
ORANGE="\033[33m"
LIGHT_GRAY="\033[37m"

def get_num_cores()->int:
    """
    get number of logical cores on the host system, minus 1

    returns at least 1
    """

    max_num_cores=1
    try:
        native_num_cores=os.cpu_count()
        if native_num_cores is not None:
            max_num_cores=native_num_cores
        elif platform.system()=="Darwin":
            max_num_cores=int(os.popen("sysctl -n hw.logicalcpu").read())
        elif platform.system()=="Linux":
            max_num_cores=int(os.popen("nproc").read())
    except (OSError,ValueError):
        pass

    if max_num_cores<=1:
        return 1

    # leave 1 core for the system
    return max_num_cores - 1

class ArgStore(str,Enum):
    presence_flag="presence_flag"
    store_value="store_value"
    append_value="append_value"

class Arg:
    def __init__(self,
        name:str,
        short:tp.Optional[str]=None,
        help:str="",
        default:tp.Optional[tp.Any]=None,
        key:tp.Optional[str]=None,
        type:tp.Type=str,
        arg_store_op:ArgStore=ArgStore.store_value,
        options:tp.Optional[tp.Union[tp.List[tp.Any],tp.Dict[str,tp.Any]]]=None
    ):
        self.name=name
        self.short=short
        self.help=help
        self.default=default
        self.key=key or self.name.lstrip("-").replace("-","_")
        self.type=type
        self.arg_store_op=arg_store_op
        if self.arg_store_op==ArgStore.presence_flag and self.default is None:
            self.default=False
        if self.arg_store_op==ArgStore.append_value and self.default is None:
            self.default=[]
        self.options=options

class ArgParser:
    def __init__(self,program_info:str,positional_key:str|None=None,positional_help:str=""):
        self.program_info=program_info
        self.args:tp.List[Arg]=[]

        self.positional_key=positional_key
        " key under which arguments not starting with - are collected, None to reject them "
        self.positional_help=positional_help

    def print_help(self):
        print(self.program_info)
        print()
        if self.positional_key is not None:
            print(f"Positional: {self.positional_help}")
            print()
        print("Arguments:")

        arg_strs=[]
        for arg in self.args:
            short_arg_name=(arg.short+' ') if arg.short else ''
            arg_strs.append((f"  {short_arg_name}{arg.name}",f" : {arg.help}"))

        longest_prefix=max(len(a[0]) for a in arg_strs)
        for (arg_pre,arg_post),arg in zip(arg_strs,self.args):
            print(arg_pre,arg_post,sep=" "*(longest_prefix-len(arg_pre)))
            match arg.arg_store_op:
                case ArgStore.presence_flag:
                    pass
                case ArgStore.store_value:
                    print(" "*(longest_prefix+4),f"- default: {arg.default}",sep=None)
                case ArgStore.append_value:
                    print(" "*(longest_prefix+4),"- may be given more than once",sep=None)

            if arg.options is not None:
                if isinstance(arg.options,dict):
                    options=[f"{k}={v}" for k,v in arg.options.items()]
                else:
                    options=[str(o) for o in arg.options]
                print(" "*(longest_prefix+4),f"- options: {', '.join(options)}",sep=None)

    def add(self,*args,**kwargs):
        self.args.append(Arg(*args,**kwargs))

    def parse(self,args:tp.List[str])->dict:
        valid_args=dict()
        for arg in self.args:
            if arg.name in valid_args:
                raise ValueError(f"Duplicate argument name {arg.name}")
            valid_args[arg.name]=arg
            if arg.short is not None:
                if arg.short in valid_args:
                    raise ValueError(f"Duplicate argument short {arg.short}")
                valid_args[arg.short]=arg

        arg_values={
            a.key:(list(a.default) if a.arg_store_op==ArgStore.append_value else a.default) for a in self.args
        }
        if self.positional_key is not None:
            arg_values[self.positional_key]=[]

        for a in args:
            if self.positional_key is not None and not a.startswith("-"):
                arg_values[self.positional_key].append(a)
                continue

            # values may contain = themselves, e.g. --call="EQ(a==b)"
            arg_split=a.split("=",1)
            arg_name=arg_split[0]
            arg_value=arg_split[1] if len(arg_split)==2 else None

            arg=valid_args.get(arg_name,None)
            if arg is None:
                raise ValueError(f"Unknown arg {a}")

            value=None
            match arg.arg_store_op:
                case ArgStore.presence_flag:
                    value=True
                case ArgStore.store_value|ArgStore.append_value:
                    if arg_value is None:
                        if arg.arg_store_op==ArgStore.append_value:
                            raise ValueError(f"Missing value for argument {arg_name}")
                        value=arg.default
                    else:
                        value=arg.type(arg_value)
                case _other:
                    raise ValueError(f"Unknown arg store operation {_other}")

            if arg.options is not None:
                if value not in arg.options:
                    raise ValueError(f"Invalid value '{value}' for argument {arg_name}, valid values are {arg.options}")

            if arg.arg_store_op==ArgStore.append_value:
                arg_values[arg.key].append(value)
            else:
                arg_values[arg.key]=value

        return arg_values

T=tp.TypeVar("T")
R=tp.TypeVar("R")

def run_pooled(
    func:tp.Callable[[T],R],
    items:tp.Sequence[T],
    num_threads:int=1,
    desc:str="",
    unit:str="it",
    timeout:float|None=None,
    show_progress:bool=True,
)->list[R|None]:
    """
    run func on every item, in a thread pool if num_threads>1

    results are returned in the order of items. an item whose result is not available
    within timeout seconds (measured from submission) yields None.
    """

    results:list[R|None]=[None for _ in items]

    if num_threads<=1 or len(items)<=1:
        for i,item in enumerate(tqdm(items,desc=desc,unit=unit,disable=not show_progress)):
            results[i]=func(item)
        return results

    threadpool=fut.ThreadPoolExecutor(max_workers=num_threads)
    future_handles:list[tp.Optional[fut.Future]]=[threadpool.submit(func,item) for item in items]
    start_time=time.perf_counter()

    progress=tqdm(total=len(items),desc=desc,unit=unit,disable=not show_progress)
    while True:
        done=True

        for i,future in enumerate(future_handles):
            if future is None:
                continue

            if not future.done():
                if timeout is not None and time.perf_counter()-start_time>timeout:
                    future.cancel()
                    future_handles[i]=None
                    progress.update(1)
                    continue

                done=False
                continue

            # propagate exceptions raised in the worker
            results[i]=future.result()
            future_handles[i]=None
            progress.update(1)

        if done:
            break

        # wait for a short time for work to run in the background
        time.sleep(5e-3)

    progress.close()

    threadpool.shutdown(wait=timeout is None,cancel_futures=True)

    return results
